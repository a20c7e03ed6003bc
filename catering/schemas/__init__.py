"""Pydantic schemas for request/response validation"""

from catering.schemas.auth import TokenPayload
from catering.schemas.daily_menu import (
    DailyMenuCreate,
    CutoffHourUpdate,
    AddPackRequest,
    AddVariantRequest,
    StockUpdate,
    AddServiceRequest,
    DailyMenuSummary,
    DailyMenuResponse,
    PublishResponse,
    PublishedMenuResponse,
)
from catering.schemas.order import (
    VariantSelection,
    OrderCreate,
    OrderResponse,
    CanModifyResponse,
)
from catering.schemas.business_service import (
    ActivateServiceRequest,
    UpdateServiceRequest,
    BusinessServiceResponse,
)
from catering.schemas.invoice import (
    GenerateInvoicesRequest,
    GenerateBusinessInvoicesRequest,
    InvoiceResponse,
)
from catering.schemas.ops import (
    DateRequest,
    DayLockResponse,
    DayLockStatus,
    OrderingLockResponse,
    KitchenSummaryResponse,
)
