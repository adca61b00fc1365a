"""Terms repository - Database operations for terms versions and acceptances"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import TermsAndConditions, User, UserTermsAcceptance


class TermsRepository:
    """Repository for terms database operations"""

    @staticmethod
    def get_by_id(db: Session, terms_id: int) -> Optional[TermsAndConditions]:
        return db.query(TermsAndConditions).filter(TermsAndConditions.id == terms_id).first()

    @staticmethod
    def get_current(db: Session, terms_type: str) -> Optional[TermsAndConditions]:
        return (
            db.query(TermsAndConditions)
            .filter(TermsAndConditions.type == terms_type)
            .order_by(TermsAndConditions.version.desc())
            .first()
        )

    @staticmethod
    def get_history(db: Session, terms_type: str) -> list[TermsAndConditions]:
        return (
            db.query(TermsAndConditions)
            .options(joinedload(TermsAndConditions.creator))
            .filter(TermsAndConditions.type == terms_type)
            .order_by(TermsAndConditions.version.desc())
            .all()
        )

    @staticmethod
    def next_version(db: Session, terms_type: str) -> int:
        latest = (
            db.query(func.max(TermsAndConditions.version))
            .filter(TermsAndConditions.type == terms_type)
            .scalar()
        )
        return (latest or 0) + 1

    @staticmethod
    def create(db: Session, **data) -> TermsAndConditions:
        terms = TermsAndConditions(**data)
        db.add(terms)
        db.commit()
        db.refresh(terms)
        return terms

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def create_acceptance(db: Session, **data) -> UserTermsAcceptance:
        acceptance = UserTermsAcceptance(**data)
        db.add(acceptance)
        return acceptance

    @staticmethod
    def get_acceptance(db: Session, acceptance_id: int) -> Optional[UserTermsAcceptance]:
        return (
            db.query(UserTermsAcceptance)
            .options(joinedload(UserTermsAcceptance.terms), joinedload(UserTermsAcceptance.user))
            .filter(UserTermsAcceptance.id == acceptance_id)
            .first()
        )

    @staticmethod
    def get_user_acceptances(db: Session, user_id: int) -> list[UserTermsAcceptance]:
        return (
            db.query(UserTermsAcceptance)
            .options(joinedload(UserTermsAcceptance.terms))
            .filter(UserTermsAcceptance.user_id == user_id)
            .order_by(UserTermsAcceptance.accepted_at.desc(), UserTermsAcceptance.id.desc())
            .all()
        )

    @staticmethod
    def get_terms_acceptances(db: Session, terms_id: int) -> list[UserTermsAcceptance]:
        return (
            db.query(UserTermsAcceptance)
            .options(joinedload(UserTermsAcceptance.user))
            .filter(UserTermsAcceptance.terms_id == terms_id)
            .order_by(UserTermsAcceptance.accepted_at.desc(), UserTermsAcceptance.id.desc())
            .all()
        )
