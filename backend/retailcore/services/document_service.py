# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from ..validation import ValidationError
from retailcore.time_utils import utcnow


def next_document_number(
    *,
    branch_id: int,
    document_type: str,
    prefix: str,
    pad: int = 4,
) -> str:
    """
    Allocate the next document number for a branch/type.

    Runs inside the caller's transaction (flush only) so the number is
    released if the document itself fails to commit. The UPDATE takes a
    row lock on (branch_id, document_type) to prevent duplicates.

    Format: PREFIX-YYYYMMDD-BBB-NNNN, e.g. INV-20261017-001-0007
    """
    if not branch_id:
        raise ValidationError("branch_id is required")
    if not document_type:
        raise ValidationError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.branch_id == branch_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(branch_id=branch_id, document_type=document_type)
            .scalar()
        )
        next_num = current - 1
    else:
        seq = DocumentSequence(branch_id=branch_id, document_type=document_type, next_number=2)
        try:
            with db.session.begin_nested():
                db.session.add(seq)
            next_num = 1
        except IntegrityError:
            # Another request created the sequence first
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            db.session.flush()
            current = (
                db.session.query(DocumentSequence.next_number)
                .filter_by(branch_id=branch_id, document_type=document_type)
                .scalar()
            )
            next_num = current - 1

    day = utcnow().strftime("%Y%m%d")
    return f"{prefix}-{day}-{branch_id:03d}-{next_num:0{pad}d}"
