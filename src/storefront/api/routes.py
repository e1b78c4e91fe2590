"""FastAPI routes for the Storefront: carts, checkout, order lifecycle and referrals."""

from fastapi import APIRouter, Depends, Query, Request
from protean.utils.globals import current_domain

from storefront.api.schemas import (
    AddToCartRequest,
    ApplyCouponRequest,
    CapturePaymentRequest,
    CartIdResponse,
    CartItemSchema,
    CartResponse,
    CheckoutRequest,
    ClickResponse,
    CommissionResponse,
    CommissionStatusRequest,
    CreateCartRequest,
    GenerateReferralCodeRequest,
    ItemIdResponse,
    OrderLineItemSchema,
    OrderResponse,
    RefundRequest,
    ReferralCodeResponse,
    StatusChangeSchema,
    StatusResponse,
    SubmitForPaymentRequest,
    TrackClickRequest,
    TransitionRequest,
    UpdateCartQuantityRequest,
)
from storefront.cart.cart import Cart
from storefront.cart.coupons import ApplyCouponToCart, RemoveCouponFromCart
from storefront.cart.items import AddToCart, RemoveFromCart, UpdateCartQuantity
from storefront.cart.management import CreateCart
from storefront.checkout.assembler import OrderAssembler
from storefront.order.lifecycle import (
    CancelOrder,
    CompleteOrder,
    MarkProcessing,
    ShipOrder,
    SubmitForPayment,
    load_order,
)
from storefront.order.order import Order
from storefront.order.payment import PaymentProcessor
from storefront.pricing.money import to_decimal
from storefront.referral import tracking


def get_assembler() -> OrderAssembler:
    return OrderAssembler()


def get_payment_processor() -> PaymentProcessor:
    return PaymentProcessor()


def _cart_response(cart: Cart) -> CartResponse:
    return CartResponse(
        cart_id=str(cart.id),
        customer_id=str(cart.customer_id) if cart.customer_id else None,
        status=cart.status,
        coupon_code=cart.coupon_code,
        referral_code=cart.referral_code,
        subtotal=cart.subtotal,
        items=[
            CartItemSchema(
                item_id=str(item.id),
                product_id=str(item.product_id),
                variant_id=str(item.variant_id) if item.variant_id else None,
                quantity=item.quantity,
                unit_price_snapshot=item.unit_price_snapshot,
            )
            for item in cart.items
        ],
    )


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        customer_id=str(order.customer_id) if order.customer_id else None,
        status=order.status,
        currency=order.currency,
        subtotal=order.subtotal,
        discount_total=order.discount_total,
        shipping_total=order.shipping_total,
        tax_total=order.tax_total,
        grand_total=order.grand_total,
        coupon_code=order.coupon_code,
        payment_method=order.payment_method,
        payment_transaction_id=order.payment_transaction_id,
        line_items=[
            OrderLineItemSchema(
                product_id=str(item.product_id),
                variant_id=str(item.variant_id) if item.variant_id else None,
                sku=item.sku,
                name=item.name,
                unit_price=item.unit_price,
                quantity=item.quantity,
                line_total=item.line_total,
            )
            for item in order.line_items
        ],
        status_history=[
            StatusChangeSchema(
                from_status=change.from_status,
                to_status=change.to_status,
                changed_at=change.changed_at,
                actor=change.actor,
                reason=change.reason,
            )
            for change in sorted(order.status_history, key=lambda c: c.changed_at)
        ],
    )


def _commission_response(commission) -> CommissionResponse:
    return CommissionResponse(
        commission_id=str(commission.id),
        order_id=str(commission.order_id),
        amount=commission.amount,
        status=commission.status,
        paid_at=commission.paid_at,
    )


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.post("", status_code=201, response_model=CartIdResponse)
async def create_cart(body: CreateCartRequest) -> CartIdResponse:
    command = CreateCart(
        customer_id=body.customer_id,
        session_id=body.session_id,
        referral_code=body.referral_code,
    )
    result = current_domain.process(command, asynchronous=False)
    return CartIdResponse(cart_id=result)


@cart_router.get("/{cart_id}", response_model=CartResponse)
async def get_cart(cart_id: str) -> CartResponse:
    return _cart_response(current_domain.repository_for(Cart).get(cart_id))


@cart_router.post("/{cart_id}/items", response_model=ItemIdResponse)
async def add_cart_item(cart_id: str, body: AddToCartRequest) -> ItemIdResponse:
    command = AddToCart(
        cart_id=cart_id,
        product_id=body.product_id,
        variant_id=body.variant_id,
        quantity=body.quantity,
    )
    item_id = current_domain.process(command, asynchronous=False)
    return ItemIdResponse(item_id=item_id)


@cart_router.put("/{cart_id}/items/{item_id}", response_model=StatusResponse)
async def update_cart_item_quantity(cart_id: str, item_id: str, body: UpdateCartQuantityRequest) -> StatusResponse:
    command = UpdateCartQuantity(cart_id=cart_id, item_id=item_id, new_quantity=body.new_quantity)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.delete("/{cart_id}/items/{item_id}", response_model=StatusResponse)
async def remove_cart_item(cart_id: str, item_id: str) -> StatusResponse:
    current_domain.process(RemoveFromCart(cart_id=cart_id, item_id=item_id), asynchronous=False)
    return StatusResponse()


@cart_router.post("/{cart_id}/coupon", response_model=StatusResponse)
async def apply_cart_coupon(cart_id: str, body: ApplyCouponRequest) -> StatusResponse:
    current_domain.process(ApplyCouponToCart(cart_id=cart_id, coupon_code=body.coupon_code), asynchronous=False)
    return StatusResponse()


@cart_router.delete("/{cart_id}/coupon", response_model=StatusResponse)
async def remove_cart_coupon(cart_id: str) -> StatusResponse:
    current_domain.process(RemoveCouponFromCart(cart_id=cart_id), asynchronous=False)
    return StatusResponse()


@cart_router.post("/{cart_id}/checkout", status_code=201, response_model=OrderResponse)
async def checkout_cart(
    cart_id: str,
    body: CheckoutRequest,
    request: Request,
    assembler: OrderAssembler = Depends(get_assembler),
) -> OrderResponse:
    attrs = body.model_dump(exclude_none=True)
    attrs["actor"] = request.headers.get("X-Actor", "customer")
    order = assembler.create_order_from_cart(cart_id, attrs)
    return _order_response(order)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("", response_model=list[OrderResponse])
async def list_orders(
    customer_id: str | None = None,
    status: str | None = None,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> list[OrderResponse]:
    orders = current_domain.repository_for(Order).list_orders(
        customer_id=customer_id, status=status, limit=limit, offset=offset
    )
    return [_order_response(order) for order in orders]


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    return _order_response(load_order(order_id))


@order_router.post("/{order_id}/submit", response_model=OrderResponse)
async def submit_for_payment(order_id: str, body: SubmitForPaymentRequest) -> OrderResponse:
    current_domain.process(
        SubmitForPayment(order_id=order_id, payment_method=body.payment_method),
        asynchronous=False,
    )
    return _order_response(load_order(order_id))


@order_router.post("/{order_id}/payment", response_model=OrderResponse)
async def capture_payment(
    order_id: str,
    body: CapturePaymentRequest,
    processor: PaymentProcessor = Depends(get_payment_processor),
) -> OrderResponse:
    return _order_response(processor.capture_payment(order_id, body.payment_details))


@order_router.post("/{order_id}/processing", response_model=OrderResponse)
async def mark_processing(order_id: str, body: TransitionRequest) -> OrderResponse:
    current_domain.process(MarkProcessing(order_id=order_id, actor=body.actor), asynchronous=False)
    return _order_response(load_order(order_id))


@order_router.post("/{order_id}/ship", response_model=OrderResponse)
async def ship_order(order_id: str, body: TransitionRequest) -> OrderResponse:
    current_domain.process(ShipOrder(order_id=order_id, actor=body.actor, reason=body.reason), asynchronous=False)
    return _order_response(load_order(order_id))


@order_router.post("/{order_id}/complete", response_model=OrderResponse)
async def complete_order(order_id: str, body: TransitionRequest) -> OrderResponse:
    current_domain.process(CompleteOrder(order_id=order_id, actor=body.actor), asynchronous=False)
    return _order_response(load_order(order_id))


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: str, body: TransitionRequest) -> OrderResponse:
    current_domain.process(CancelOrder(order_id=order_id, reason=body.reason, actor=body.actor), asynchronous=False)
    return _order_response(load_order(order_id))


@order_router.post("/{order_id}/refund", response_model=OrderResponse)
async def refund_order(
    order_id: str,
    body: RefundRequest,
    processor: PaymentProcessor = Depends(get_payment_processor),
) -> OrderResponse:
    order = load_order(order_id)
    amount = body.amount
    if amount is None:
        amount = to_decimal(order.grand_total) - to_decimal(order.refunded_total)
    return _order_response(processor.refund_payment(order_id, amount, reason=body.reason))


# ---------------------------------------------------------------------------
# Referral Router
# ---------------------------------------------------------------------------
referral_router = APIRouter(prefix="/referrals", tags=["referrals"])


@referral_router.post("", status_code=201, response_model=ReferralCodeResponse)
async def generate_referral_code(body: GenerateReferralCodeRequest) -> ReferralCodeResponse:
    referral_code = tracking.generate_referral_code(
        customer_id=body.customer_id,
        commission_type=body.commission_type,
        commission_value=body.commission_value,
        code=body.code,
    )
    return ReferralCodeResponse(
        referral_code_id=str(referral_code.id),
        code=referral_code.code,
        commission_type=referral_code.commission_type,
        commission_value=referral_code.commission_value,
        status=referral_code.status,
    )


@referral_router.post("/{code}/clicks", status_code=201, response_model=ClickResponse)
async def track_click(code: str, body: TrackClickRequest, request: Request) -> ClickResponse:
    click = tracking.track_click(
        code,
        customer_id=body.customer_id,
        session_id=body.session_id,
        ip_address=request.client.host if request.client else None,
        user_agent=body.user_agent or request.headers.get("User-Agent"),
        referrer_url=body.referrer_url,
    )
    return ClickResponse(click_id=str(click.id), expires_at=click.expires_at)


@referral_router.get("/customers/{customer_id}/stats")
async def referral_stats(customer_id: str) -> dict:
    stats = tracking.referral_stats(customer_id)
    return {key: str(value) if key.endswith(("commission", "rate")) else value for key, value in stats.items()}


@referral_router.get("/commissions", response_model=list[CommissionResponse])
async def list_commissions(
    referral_code_id: str | None = None,
    customer_id: str | None = None,
    status: str | None = None,
    limit: int | None = Query(default=None, ge=1),
) -> list[CommissionResponse]:
    commissions = tracking.list_commissions(
        referral_code_id=referral_code_id, customer_id=customer_id, status=status, limit=limit
    )
    return [_commission_response(commission) for commission in commissions]


@referral_router.post("/commissions/{commission_id}/status", response_model=CommissionResponse)
async def update_commission_status(commission_id: str, body: CommissionStatusRequest) -> CommissionResponse:
    return _commission_response(tracking.update_commission_status(commission_id, body.status))
