"""Data models for storefront entities and API envelopes."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field


class WireModel(BaseModel):
    """Base for models parsed from API payloads (camelCase, extra fields ignored)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class NamedRef(WireModel):
    """Nested category/brand reference inside a product payload."""

    name: Optional[str] = None


class Product(WireModel):
    """Represents a product from the storefront catalog."""

    id: str = Field(validation_alias=AliasChoices("_id", "id"), description="Product ID")
    title: str = Field(description="Product title")
    price: Decimal = Field(description="List price")
    price_after_discount: Optional[Decimal] = Field(
        None,
        validation_alias=AliasChoices("priceAfterDiscount", "price_after_discount"),
        description="Discounted price if any",
    )
    ratings_average: Optional[float] = Field(
        None, validation_alias=AliasChoices("ratingsAverage", "ratings_average")
    )
    image_cover: Optional[str] = Field(
        None, validation_alias=AliasChoices("imageCover", "image_cover")
    )
    description: Optional[str] = None
    slug: Optional[str] = None
    category: Optional[NamedRef] = None
    brand: Optional[NamedRef] = None

    @property
    def unit_price(self) -> Decimal:
        """Price charged per unit, preferring the discounted price."""
        if self.price_after_discount is not None:
            return self.price_after_discount
        return self.price

    @property
    def category_name(self) -> Optional[str]:
        return self.category.name if self.category else None

    @property
    def brand_name(self) -> Optional[str]:
        return self.brand.name if self.brand else None


class Category(WireModel):
    """Represents a product category."""

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    name: str
    slug: Optional[str] = None
    image: Optional[str] = None


class Brand(Category):
    """Represents a product brand."""


class CartLine(BaseModel):
    """Represents one product entry in the cart."""

    product_id: str = Field(description="Product ID, unique within a cart")
    quantity: int = Field(ge=1, description="Quantity of the product")
    unit_price: Decimal = Field(description="Unit price (discounted when available)")
    title: Optional[str] = Field(None, description="Product title")
    image_cover: Optional[str] = Field(None, description="Product image URL")

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class CartSnapshot(BaseModel):
    """Authoritative or optimistically projected cart contents."""

    cart_id: Optional[str] = Field(None, description="Server-side cart ID")
    items: list[CartLine] = Field(default_factory=list, description="Cart lines in server order")

    @computed_field
    @property
    def total_price(self) -> Decimal:
        return sum((line.line_total for line in self.items), Decimal("0"))

    @computed_field
    @property
    def item_count(self) -> int:
        return len(self.items)

    def find(self, product_id: str) -> Optional[CartLine]:
        for line in self.items:
            if line.product_id == product_id:
                return line
        return None

    def with_added(self, product: Product) -> "CartSnapshot":
        """Projection of adding one unit of a product (the API increments existing lines)."""
        if self.find(product.id) is not None:
            items = [
                line.model_copy(update={"quantity": line.quantity + 1})
                if line.product_id == product.id
                else line
                for line in self.items
            ]
        else:
            items = self.items + [
                CartLine(
                    product_id=product.id,
                    quantity=1,
                    unit_price=product.unit_price,
                    title=product.title,
                    image_cover=product.image_cover,
                )
            ]
        return self.model_copy(update={"items": items})

    def with_quantity(self, product_id: str, quantity: int) -> "CartSnapshot":
        if quantity < 1:
            raise ValueError("Quantity must be at least 1")
        items = [
            line.model_copy(update={"quantity": quantity})
            if line.product_id == product_id
            else line
            for line in self.items
        ]
        return self.model_copy(update={"items": items})

    def without(self, product_id: str) -> "CartSnapshot":
        items = [line for line in self.items if line.product_id != product_id]
        return self.model_copy(update={"items": items})

    def cleared(self) -> "CartSnapshot":
        return CartSnapshot()


class WishlistMembership(BaseModel):
    """Set of product IDs marked favorite by the current user."""

    member_ids: set[str] = Field(default_factory=set)
    products: list[Product] = Field(default_factory=list)

    def __contains__(self, product_id: object) -> bool:
        return product_id in self.member_ids

    def with_member(self, product_id: str, product: Optional[Product] = None) -> "WishlistMembership":
        products = list(self.products)
        if product is not None and product_id not in self.member_ids:
            products.append(product)
        return WishlistMembership(member_ids=self.member_ids | {product_id}, products=products)

    def without_member(self, product_id: str) -> "WishlistMembership":
        return WishlistMembership(
            member_ids=self.member_ids - {product_id},
            products=[p for p in self.products if p.id != product_id],
        )


class ProductPage(BaseModel):
    """One page of the product catalog."""

    items: list[Product] = Field(default_factory=list)
    page: int = 1
    total_pages: int = 1
    page_size: int = 40


class Order(WireModel):
    """Represents a placed order."""

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    total_order_price: Decimal = Field(
        Decimal("0"), validation_alias=AliasChoices("totalOrderPrice", "total_order_price")
    )
    payment_method_type: Optional[str] = Field(
        None, validation_alias=AliasChoices("paymentMethodType", "payment_method_type")
    )
    is_paid: bool = Field(False, validation_alias=AliasChoices("isPaid", "is_paid"))
    is_delivered: bool = Field(False, validation_alias=AliasChoices("isDelivered", "is_delivered"))
    created_at: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("createdAt", "created_at")
    )
    cart_items: list[dict[str, Any]] = Field(
        default_factory=list, validation_alias=AliasChoices("cartItems", "cart_items")
    )

    @property
    def item_count(self) -> int:
        return len(self.cart_items)


class Session(BaseModel):
    """Session data for an authenticated user."""

    token: str = Field(default="", description="Opaque token issued by the API")
    user_email: Optional[str] = Field(None, description="User email")
    user_name: Optional[str] = Field(None, description="User display name")

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)


class AuthCredentials(BaseModel):
    """Authentication credentials."""

    email: str
    password: str


class RegistrationFields(BaseModel):
    """Fields submitted by the sign-up form."""

    name: str
    email: str
    password: str
    re_password: str
    phone: str


class ShippingAddress(BaseModel):
    """Shipping details collected at checkout."""

    details: str = ""
    phone: str = ""
    city: str = ""


# Wire envelopes. Shape mismatches fail validation and become malformed-response failures.


class CartProductRef(WireModel):
    """Product inside a cart line; the API may return it populated or as a bare ID."""

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    title: Optional[str] = None
    image_cover: Optional[str] = Field(None, validation_alias=AliasChoices("imageCover", "image_cover"))
    price: Optional[Decimal] = None
    price_after_discount: Optional[Decimal] = Field(
        None, validation_alias=AliasChoices("priceAfterDiscount", "price_after_discount")
    )


class CartEntry(WireModel):
    count: int
    price: Decimal = Decimal("0")
    product: Union[CartProductRef, str]


class CartData(WireModel):
    id: Optional[str] = Field(None, validation_alias=AliasChoices("_id", "id"))
    products: list[CartEntry] = Field(default_factory=list)
    total_cart_price: Optional[Decimal] = Field(
        None, validation_alias=AliasChoices("totalCartPrice", "total_cart_price")
    )


class CartEnvelope(WireModel):
    num_of_cart_items: Optional[int] = Field(
        None, validation_alias=AliasChoices("numOfCartItems", "num_of_cart_items")
    )
    cart_id: Optional[str] = Field(None, validation_alias=AliasChoices("cartId", "cart_id"))
    data: CartData

    def to_snapshot(self) -> CartSnapshot:
        lines = []
        for entry in self.data.products:
            if isinstance(entry.product, str):
                lines.append(CartLine(product_id=entry.product, quantity=entry.count, unit_price=entry.price))
                continue
            ref = entry.product
            unit_price = ref.price_after_discount
            if unit_price is None:
                unit_price = ref.price if ref.price is not None else entry.price
            lines.append(
                CartLine(
                    product_id=ref.id,
                    quantity=entry.count,
                    unit_price=unit_price,
                    title=ref.title,
                    image_cover=ref.image_cover,
                )
            )
        return CartSnapshot(cart_id=self.data.id or self.cart_id, items=lines)


class PageMetadata(WireModel):
    current_page: int = Field(1, validation_alias=AliasChoices("currentPage", "current_page"))
    number_of_pages: int = Field(1, validation_alias=AliasChoices("numberOfPages", "number_of_pages"))
    limit: Optional[int] = None


class ProductListEnvelope(WireModel):
    metadata: Optional[PageMetadata] = None
    data: list[Product]


class ProductEnvelope(WireModel):
    data: Product


class WishlistEnvelope(WireModel):
    count: Optional[int] = None
    data: list[Product]


class CategoryListEnvelope(WireModel):
    data: list[Category]


class BrandListEnvelope(WireModel):
    data: list[Brand]


class OrderListEnvelope(WireModel):
    data: list[Order]


class AuthUser(WireModel):
    name: Optional[str] = None
    email: Optional[str] = None


class AuthEnvelope(WireModel):
    token: str = Field(min_length=1)
    user: Optional[AuthUser] = None


class MessageEnvelope(WireModel):
    """Acknowledgement body of write endpoints that return no useful payload."""

    status: Optional[str] = None
    message: Optional[str] = None
