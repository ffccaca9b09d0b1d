"""
Module: scheduling_kernel.selectors.base
Responsibility: Abstract base class for all read-only schedule selectors.
Architecture position: Kernel > Selectors.  May import from db/ and models/.
    MUST NOT import from outer layers.

Invariants enforced:
    - Read-only access: selectors accept a Session from the caller but MUST
      NOT call session.add(), session.delete(), session.commit(), or
      session.flush().
    - DTO return convention: selectors return frozen domain records, NOT
      ORM instances.
    - Session ownership: the caller owns the session and its transaction
      scope, so every load within one analysis sees one snapshot.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from scheduling_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return domain records.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session
