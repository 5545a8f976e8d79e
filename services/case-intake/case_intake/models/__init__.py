"""
SQLAlchemy models
"""
from case_intake.models.reference import StatusGroup, Status, Customer, LabUser, CustomerShipTo, Provider
from case_intake.models.case import Case, CaseTransaction, CaseItem, CaseItemTooth, ToothLocation
from case_intake.models.ticket import (
    EmailTemplate, CaseTicket, CaseTicketDetail, TicketAssignmentLog, TicketStatus, TicketAction
)

__all__ = [
    "StatusGroup",
    "Status",
    "Customer",
    "LabUser",
    "CustomerShipTo",
    "Provider",
    "Case",
    "CaseTransaction",
    "CaseItem",
    "CaseItemTooth",
    "ToothLocation",
    "EmailTemplate",
    "CaseTicket",
    "CaseTicketDetail",
    "TicketAssignmentLog",
    "TicketStatus",
    "TicketAction",
]
