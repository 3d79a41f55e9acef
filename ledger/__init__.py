# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Ledger integration module.

Decodes ledger records, reconciles them with local state and drives
matches through the MatchController.
"""

from ledger.codec import RemoteSnapshot, decode_record, encode_record
from ledger.controller import MatchController
from ledger.polling import PollingController
from ledger.reconcile import ReconciliationEngine, merge
from ledger.services import LedgerReader, LedgerWriter

__all__ = [
    'RemoteSnapshot',
    'decode_record',
    'encode_record',
    'MatchController',
    'PollingController',
    'ReconciliationEngine',
    'merge',
    'LedgerReader',
    'LedgerWriter',
]
