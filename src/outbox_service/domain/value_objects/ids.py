from __future__ import annotations

from typing import NewType
from uuid import UUID

TenantId = NewType("TenantId", UUID)
WorkerId = NewType("WorkerId", str)
