from pydantic import BaseModel
from typing import List, Optional


class InviteCandidate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class SendInvitesRequest(BaseModel):
    class_id: Optional[str] = None
    candidates: Optional[List[InviteCandidate]] = None
