"""
FinControl FastAPI application.

This is the entry point for the application.
All routers are registered here.
"""

from fastapi import FastAPI

from fincontrol.api.accounts import router as accounts_router
from fincontrol.api.budgets import router as budgets_router
from fincontrol.api.currencies import router as currencies_router
from fincontrol.api.data import router as data_router
from fincontrol.api.health import router as health_router
from fincontrol.api.invites import router as invites_router
from fincontrol.api.recurring import router as recurring_router
from fincontrol.api.transactions import router as transactions_router
from fincontrol.config import get_settings
from fincontrol.logging_config import configure_logging

settings = get_settings()

configure_logging()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Personal finance ledger: accounts, transactions, "
                "transfers, recurring payments, budgets, goals and currencies",
)

# Register routers
app.include_router(health_router)
app.include_router(accounts_router)
app.include_router(transactions_router)
app.include_router(recurring_router)
app.include_router(invites_router)
app.include_router(budgets_router)
app.include_router(currencies_router)
app.include_router(data_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "fincontrol.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
