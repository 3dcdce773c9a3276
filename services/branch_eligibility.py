"""Branch (subgroup) eligibility rules for assignments.

Registration numbers embed the candidate's branch, e.g. ``22BCE10100`` belongs
to branch ``BCE``. An assignment may be restricted to a single branch
(``"BCE"``) or to several (``"BCE,MIM,BAI"``), and optionally narrowed further
to subclasses that follow the branch code in the registration number.
"""
import re
from typing import Iterable, List, Optional

BRANCH_PATTERNS = [
    re.compile(r'^\d{2}([A-Z]{2,4})\d+$'),   # 22BCE10100
    re.compile(r'^\d{4}([A-Z]{2,4})\d+$'),   # 2024BCE001
    re.compile(r'^([A-Z]{2,4})\d+$'),        # BCE001
]
FALLBACK_PATTERN = re.compile(r'([A-Z]{2,4})')


def extract_branch(registration_number: Optional[str]) -> Optional[str]:
    """Return the branch code embedded in a registration number, or None"""
    if not registration_number:
        return None
    reg_num = str(registration_number).upper().strip()
    if not reg_num:
        return None
    
    for pattern in BRANCH_PATTERNS:
        match = pattern.match(reg_num)
        if match:
            return match.group(1)
    
    match = FALLBACK_PATTERN.search(reg_num)
    return match.group(1) if match else None


def allowed_branches(subgroup: Optional[str]) -> List[str]:
    """Split an assignment subgroup into upper-cased branch codes"""
    if not subgroup or not subgroup.strip():
        return []
    return [b.strip() for b in subgroup.upper().split(',') if b.strip()]


def is_branch_allowed(subgroup: Optional[str], branch: Optional[str]) -> bool:
    # No restriction means everyone can see it
    if not subgroup or not subgroup.strip():
        return True
    if not branch:
        return False
    
    normalized = subgroup.strip().upper()
    if ',' in normalized:
        return branch.upper() in allowed_branches(normalized)
    return branch.upper() == normalized


def matches_subclasses(registration_number: Optional[str], branch: Optional[str],
                       subclasses: Optional[Iterable[str]]) -> bool:
    """Subclasses follow the branch code, e.g. BCE + "1" matches 22BCE10100"""
    subclasses = [s.strip() for s in (subclasses or []) if s and s.strip()]
    if not subclasses:
        return True
    if not registration_number or not branch:
        return False
    pattern = re.escape(branch) + "(" + "|".join(re.escape(s) for s in subclasses) + ")"
    return re.search(pattern, str(registration_number), re.IGNORECASE) is not None


def is_candidate_eligible(assignment: dict, registration_number: Optional[str]) -> bool:
    """Whether a candidate with this registration number may see and take the assignment"""
    subgroup = assignment.get("subgroup") or ""
    if not subgroup.strip():
        return True
    
    branch = extract_branch(registration_number)
    if not is_branch_allowed(subgroup, branch):
        return False
    return matches_subclasses(registration_number, branch, assignment.get("subclasses"))


def filter_eligible_students(students: List[dict], subgroup: Optional[str],
                             subclasses: Optional[List[str]] = None) -> List[dict]:
    """Keep the student documents eligible for a subgroup/subclasses restriction"""
    assignment = {"subgroup": subgroup or "", "subclasses": subclasses or []}
    return [s for s in students if is_candidate_eligible(assignment, s.get("registration_number"))]
