from fastapi import Depends, Request
from sqlalchemy.orm import Session

from gatewayapi.containers import Container
from gatewayapi.database.session import get_db

# Services
from gatewayapi.services.checkout_service import CheckoutService
from gatewayapi.services.gamification_service import GamificationService
from gatewayapi.services.ledger_service import LedgerService
from gatewayapi.services.split_service import SplitService, TransactionService


def get_container(request: Request) -> Container:
    return request.app.container


def get_ledger_service(
    db: Session = Depends(get_db), container: Container = Depends(get_container)
) -> LedgerService:
    return container.services.ledger_service(db=db)


def get_split_service(
    db: Session = Depends(get_db), container: Container = Depends(get_container)
) -> SplitService:
    return container.services.split_service(db=db)


def get_transaction_service(
    db: Session = Depends(get_db), container: Container = Depends(get_container)
) -> TransactionService:
    return container.services.transaction_service(db=db)


def get_checkout_service(
    db: Session = Depends(get_db), container: Container = Depends(get_container)
) -> CheckoutService:
    return container.services.checkout_service(db=db)


def get_gamification_service(
    db: Session = Depends(get_db), container: Container = Depends(get_container)
) -> GamificationService:
    return container.services.gamification_service(db=db)
