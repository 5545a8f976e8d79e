"""
Case transaction (status history) service
"""
from sqlalchemy.orm import Session
from typing import Optional
from case_intake.models.case import CaseTransaction


def record_case_transaction(
    db: Session,
    case_id: str,
    status_code: int,
    employee_id: Optional[str] = None,
    user_id: Optional[int] = None,
    ship_carrier_id: Optional[int] = None,
    ship_ref_num: Optional[str] = None,
    ship_company: Optional[str] = None,
) -> CaseTransaction:
    """Append a case transaction row; the caller owns the commit"""
    transaction = CaseTransaction(
        case_id=case_id,
        employee_id=employee_id,
        user_id=user_id,
        status_code=status_code,
        ship_carrier_id=ship_carrier_id,
        ship_ref_num=ship_ref_num,
        ship_company=ship_company,
    )
    db.add(transaction)
    return transaction
