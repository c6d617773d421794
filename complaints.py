import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field

import identifiers
import mailer
from database import Repository, get_db, serialize_doc
from errors import NotFoundError, internal_errors
from mailer import Mailer, get_mailer
from schemas import Complaint as ComplaintSchema, ComplaintStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/complaints", tags=["complaints"])


class ComplaintBody(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    message: str = Field(..., min_length=1)
    userType: str = Field(..., min_length=1)


class ComplaintStatusBody(BaseModel):
    complaintId: str = Field(..., min_length=1)
    status: ComplaintStatus


def file_complaint(db, mail: Mailer, body: ComplaintBody) -> dict:
    """Store a complaint and acknowledge it by email.

    The acknowledgement is part of the operation: if it cannot be sent the
    error reaches the caller, although the complaint itself stays stored.
    """
    complaints = Repository(db, "complaint")
    complaint = ComplaintSchema(
        complaintNumber=identifiers.unique_id(complaints, "complaintNumber", identifiers.six_digits),
        **body.model_dump(),
    )
    saved = complaints.insert(complaint)
    logger.info("Complaint %s registered for %s", saved["complaintNumber"], saved["email"])
    mail.send(saved["email"], *mailer.complaint_acknowledgement(saved["complaintNumber"], saved["message"]))
    return saved


def update_status(db, complaint_number: str, status: str) -> dict:
    complaint = Repository(db, "complaint").update(
        {"complaintNumber": complaint_number},
        {"$set": {"status": status}},
    )
    if not complaint:
        raise NotFoundError("Complaint not found")
    return complaint


@router.post("/post-complaints", status_code=201)
def post_complaint(body: ComplaintBody, db=Depends(get_db), mail: Mailer = Depends(get_mailer)):
    with internal_errors("Error registering complaint"):
        complaint = file_complaint(db, mail, body)
    return {"success": True, "message": "Complaint registered successfully", "complaint": serialize_doc(complaint)}


@router.get("/get-complaints")
def get_complaints(db=Depends(get_db)):
    with internal_errors("Error fetching complaints"):
        complaints = Repository(db, "complaint").find()
    return {"success": True, "complaints": [serialize_doc(c) for c in complaints]}


@router.put("/update-complaint-status")
def update_complaint_status(body: ComplaintStatusBody, db=Depends(get_db)):
    with internal_errors("Error updating complaint status"):
        complaint = update_status(db, body.complaintId, body.status)
    return {"success": True, "message": "Complaint status updated successfully", "complaint": serialize_doc(complaint)}
