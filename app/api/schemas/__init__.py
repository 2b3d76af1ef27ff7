from app.api.schemas.plan import (
    PlanCreate,
    PlanUpdate,
    PlanResponse,
)
from app.api.schemas.user import (
    UserProfileResponse,
    UserProfileUpdate,
)
from app.api.schemas.billing import (
    SubscribeRequest,
    ChangePlanRequest,
    SubscriptionResponse,
    PaymentResponse,
    SubscribeResponse,
    BillingSummaryResponse,
    PaymentStatusResponse,
    AsaasSubscriptionDetailResponse,
    AsaasCurrentSubscriptionResponse,
    StripeSubscriptionDetailResponse,
    WebhookAck,
)
from app.api.schemas.job import (
    JobPayload,
    JobBatch,
    SearchResponse,
    JobResponse,
    JobAreaResponse,
    MessageResponse,
)
