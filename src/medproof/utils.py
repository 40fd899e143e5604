# Copyright 2025 Gowtham Rao <rao@ohdsi.org>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Utility functions for the application."""

import hashlib


def hash_details(details: str | bytes) -> str:
    """
    Computes the content hash stored on a medication record.

    Args:
        details: The off-chain medication details, as text or raw bytes.

    Returns:
        A SHA-256 digest as a 0x-prefixed lowercase hex string.
    """
    if isinstance(details, str):
        details = details.encode("utf-8")
    return "0x" + hashlib.sha256(details).hexdigest()
