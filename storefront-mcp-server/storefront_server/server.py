"""MCP Server for the storefront commerce API."""

import asyncio
import json
import logging
from typing import Any, Optional

from mcp.server import Server
from mcp.types import Resource, TextContent, Tool
from pydantic import AnyUrl

from .account import AccountService
from .auth import SessionHolder
from .catalog import ProductListing
from .checkout import CheckoutFlow
from .config import Settings
from .models import CartSnapshot, Product, RegistrationFields, ShippingAddress
from .page import StorefrontPage
from .results import ApiFailure
from .storefront_client import StorefrontClient

logger = logging.getLogger("storefront-mcp-server")

# Initialize server
app = Server("storefront-mcp-server")

# Global state
settings: Settings
session: SessionHolder
client: StorefrontClient
account: AccountService


def configure(
    new_settings: Settings,
    new_session: Optional[SessionHolder] = None,
    new_client: Optional[StorefrontClient] = None,
) -> None:
    """Wire up the global state used by the tool handlers."""
    global settings, session, client, account

    settings = new_settings
    session = new_session or SessionHolder(session_file=new_settings.session_file)
    client = new_client or StorefrontClient(session, base_url=new_settings.base_url, timeout=new_settings.timeout)
    account = AccountService(client, session)


async def ensure_authenticated() -> bool:
    """Ensure there is a session, auto-login with configured credentials if needed."""
    if session.is_authenticated:
        return True

    if settings.has_credentials:
        logger.info("Auto-logging in with configured credentials...")
        result = await account.login(settings.email, settings.password)
        if result.success:
            logger.info("Auto-login successful")
            return True
        logger.warning(f"Auto-login failed: {result.message}")

    return False


def text(message: str) -> list[TextContent]:
    return [TextContent(type="text", text=message)]


NOT_AUTHENTICATED = text(
    "Error: Not authenticated. Please configure STOREFRONT_EMAIL and STOREFRONT_PASSWORD, "
    "or use storefront_login first."
)


def format_product(index: int, product: Product, wished: bool = False) -> list[str]:
    lines = [f"\n{index}. {product.title}", f"   ID: {product.id}"]
    if product.price_after_discount is not None:
        lines.append(f"   Price: {product.price_after_discount} EGP (was {product.price} EGP)")
    else:
        lines.append(f"   Price: {product.price} EGP")
    if product.ratings_average is not None:
        lines.append(f"   Rating: {product.ratings_average}")
    if product.category_name:
        lines.append(f"   Category: {product.category_name}")
    if product.brand_name:
        lines.append(f"   Brand: {product.brand_name}")
    if wished:
        lines.append("   ♥ In wishlist")
    return lines


def format_cart(snapshot: CartSnapshot) -> str:
    if not snapshot.items:
        return "Your cart is empty. Nothing here yet."

    lines = [f"Shopping Cart ({snapshot.item_count} item(s)):", f"Total: {snapshot.total_price} EGP", "", "Items:"]
    for line in snapshot.items:
        name = line.title or f"Product {line.product_id}"
        lines.append(f"  - {name} (ID: {line.product_id})")
        lines.append(f"    {line.quantity} x {line.unit_price} EGP = {line.line_total} EGP")
    return "\n".join(lines)


def schema(properties: dict[str, Any], required: Optional[list[str]] = None) -> dict[str, Any]:
    result: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        result["required"] = required
    return result


PRODUCT_ID = {"product_id": {"type": "string", "description": "Product ID"}}


@app.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    resources = []

    if session.is_authenticated:
        resources.extend(
            [
                Resource(
                    uri=AnyUrl("storefront://cart"),
                    name="Shopping Cart",
                    mimeType="application/json",
                    description="Current shopping cart contents",
                ),
                Resource(
                    uri=AnyUrl("storefront://wishlist"),
                    name="Wishlist",
                    mimeType="application/json",
                    description="Products marked as favorite",
                ),
            ]
        )

    return resources


@app.read_resource()
async def read_resource(uri: AnyUrl) -> str:
    """Read a resource by URI."""
    uri_str = str(uri)

    if uri_str not in ("storefront://cart", "storefront://wishlist"):
        raise ValueError(f"Unknown resource: {uri}")

    if not session.is_authenticated:
        return "Error: Not authenticated. Please login first."

    async with StorefrontPage(client, session) as page:
        if uri_str == "storefront://cart":
            await page.cart.load()
            if page.cart.error:
                return f"Error: {page.cart.error}"
            return page.cart.snapshot.model_dump_json(indent=2)

        await page.wishlist.load()
        if page.wishlist.error:
            return f"Error: {page.wishlist.error}"
        return json.dumps(sorted(page.wishlist.membership.member_ids), indent=2)


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="storefront_login",
            description="Sign in. Uses STOREFRONT_EMAIL / STOREFRONT_PASSWORD if not provided.",
            inputSchema=schema(
                {
                    "email": {"type": "string", "description": "Account email"},
                    "password": {"type": "string", "description": "Account password"},
                }
            ),
        ),
        Tool(
            name="storefront_logout",
            description="Logout and clear session",
            inputSchema=schema({}),
        ),
        Tool(
            name="storefront_register",
            description="Create a new account and sign in",
            inputSchema=schema(
                {
                    "name": {"type": "string"},
                    "email": {"type": "string"},
                    "password": {"type": "string"},
                    "re_password": {"type": "string", "description": "Password confirmation"},
                    "phone": {"type": "string"},
                },
                ["name", "email", "password", "re_password", "phone"],
            ),
        ),
        Tool(
            name="storefront_forgot_password",
            description="Send a password reset code to an email address",
            inputSchema=schema({"email": {"type": "string"}}, ["email"]),
        ),
        Tool(
            name="storefront_reset_password",
            description="Reset the password using the emailed code",
            inputSchema=schema(
                {
                    "email": {"type": "string"},
                    "code": {"type": "string", "description": "Reset code from the email"},
                    "new_password": {"type": "string"},
                },
                ["email", "code", "new_password"],
            ),
        ),
        Tool(
            name="storefront_list_products",
            description="List catalog products page by page",
            inputSchema=schema({"page": {"type": "integer", "description": "Page number (default: 1)", "default": 1}}),
        ),
        Tool(
            name="storefront_search_products",
            description="Search products by title, description, category, brand or slug",
            inputSchema=schema(
                {
                    "query": {"type": "string", "description": "Search term"},
                    "page": {"type": "integer", "description": "Results page, 12 per page (default: 1)", "default": 1},
                },
                ["query"],
            ),
        ),
        Tool(
            name="storefront_list_categories",
            description="List product categories",
            inputSchema=schema({}),
        ),
        Tool(
            name="storefront_list_brands",
            description="List product brands",
            inputSchema=schema({}),
        ),
        Tool(
            name="storefront_get_cart",
            description="Get current shopping cart contents with all items and total",
            inputSchema=schema({}),
        ),
        Tool(
            name="storefront_add_to_cart",
            description="Add one unit of a product to the shopping cart",
            inputSchema=schema(PRODUCT_ID, ["product_id"]),
        ),
        Tool(
            name="storefront_update_cart_quantity",
            description="Set the quantity of a product in the shopping cart (minimum 1)",
            inputSchema=schema(
                {**PRODUCT_ID, "quantity": {"type": "integer", "description": "New quantity", "minimum": 1}},
                ["product_id", "quantity"],
            ),
        ),
        Tool(
            name="storefront_remove_from_cart",
            description="Remove a product from the shopping cart",
            inputSchema=schema(PRODUCT_ID, ["product_id"]),
        ),
        Tool(
            name="storefront_clear_cart",
            description="Remove every item from the shopping cart",
            inputSchema=schema({}),
        ),
        Tool(
            name="storefront_get_wishlist",
            description="List products in the wishlist",
            inputSchema=schema({}),
        ),
        Tool(
            name="storefront_toggle_wishlist",
            description="Add a product to the wishlist, or remove it if already there",
            inputSchema=schema(PRODUCT_ID, ["product_id"]),
        ),
        Tool(
            name="storefront_move_to_cart",
            description="Add a wishlist product to the cart and remove it from the wishlist",
            inputSchema=schema(PRODUCT_ID, ["product_id"]),
        ),
        Tool(
            name="storefront_get_orders",
            description="List placed orders",
            inputSchema=schema({}),
        ),
        Tool(
            name="storefront_checkout",
            description="Pay for the current cart",
            inputSchema=schema(
                {
                    "details": {"type": "string", "description": "Street address details"},
                    "phone": {"type": "string"},
                    "city": {"type": "string"},
                    "payment_method": {"type": "string", "enum": ["cash", "card"], "default": "cash"},
                },
                ["details", "phone", "city"],
            ),
        ),
    ]


AUTH_REQUIRED_TOOLS = {
    "storefront_get_cart",
    "storefront_add_to_cart",
    "storefront_update_cart_quantity",
    "storefront_remove_from_cart",
    "storefront_clear_cart",
    "storefront_get_wishlist",
    "storefront_toggle_wishlist",
    "storefront_move_to_cart",
    "storefront_get_orders",
    "storefront_checkout",
}


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Handle tool calls."""
    arguments = arguments or {}
    try:
        if name in AUTH_REQUIRED_TOOLS and not await ensure_authenticated():
            return NOT_AUTHENTICATED

        if name == "storefront_login":
            email = arguments.get("email") or settings.email
            password = arguments.get("password") or settings.password
            if not email or not password:
                return text("Error: No credentials provided and STOREFRONT_EMAIL/STOREFRONT_PASSWORD not configured.")
            result = await account.login(email, password)
            return text(result.message if result.success else f"Login failed: {result.message}")

        elif name == "storefront_logout":
            return text(account.logout().message)

        elif name == "storefront_register":
            fields = RegistrationFields(**{key: arguments.get(key, "") for key in RegistrationFields.model_fields})
            result = await account.register(fields)
            return text(result.message if result.success else f"Registration failed: {result.message}")

        elif name == "storefront_forgot_password":
            result = await account.request_password_reset(arguments["email"])
            return text(result.message)

        elif name == "storefront_reset_password":
            result = await account.reset_password(arguments["email"], arguments["code"], arguments["new_password"])
            return text(result.message)

        elif name == "storefront_list_products":
            listing = ProductListing(client, page_size=settings.page_size)
            if not await listing.load(int(arguments.get("page", 1))):
                return text(f"Error: {listing.error}")
            if not listing.products:
                return text("No products here yet.")
            lines = [f"Products (page {listing.current_page} of {listing.total_pages}):"]
            for i, product in enumerate(listing.products, 1):
                lines.extend(format_product(i, product))
            return text("\n".join(lines))

        elif name == "storefront_search_products":
            query = arguments.get("query", "")
            if not query.strip():
                return text("Error: Query parameter required")
            listing = ProductListing(client, page_size=settings.page_size)
            if not await listing.search(query, int(arguments.get("page", 1))):
                return text(f"Error: {listing.error}")
            if not listing.products:
                return text(f"No products found for: {query}")
            lines = [
                f"Found {len(listing.matches)} product(s) (page {listing.current_page} of {listing.total_pages}):"
            ]
            for i, product in enumerate(listing.products, 1):
                lines.extend(format_product(i, product))
            return text("\n".join(lines))

        elif name in ("storefront_list_categories", "storefront_list_brands"):
            label = "categories" if name == "storefront_list_categories" else "brands"
            fetch = client.fetch_categories if label == "categories" else client.fetch_brands
            result = await fetch()
            if isinstance(result, ApiFailure):
                return text(f"Error: Failed to load {label}: {result.user_message}")
            if not result.data:
                return text(f"No {label} here yet.")
            lines = [f"{label.capitalize()} ({len(result.data)}):"]
            lines.extend(f"  - {item.name} (ID: {item.id})" for item in result.data)
            return text("\n".join(lines))

        elif name == "storefront_get_cart":
            async with StorefrontPage(client, session) as page:
                if not await page.cart.load(enrich=True):
                    return text(f"Error: {page.cart.error}")
                return text(format_cart(page.cart.snapshot))

        elif name == "storefront_add_to_cart":
            product_id = arguments["product_id"]
            product_result = await client.fetch_product(product_id)
            if isinstance(product_result, ApiFailure):
                return text(f"Error: Product {product_id} not found: {product_result.user_message}")
            async with StorefrontPage(client, session) as page:
                await page.cart.load()
                if not await page.cart.add(product_result.data):
                    return text(f"Error: {page.cart.error}")
                return text(f"Added {product_result.data.title} to cart.\n\n{format_cart(page.cart.snapshot)}")

        elif name == "storefront_update_cart_quantity":
            product_id = arguments["product_id"]
            quantity = int(arguments["quantity"])
            if quantity < 1:
                return text("Error: Quantity must be at least 1. Use storefront_remove_from_cart to remove items.")
            async with StorefrontPage(client, session) as page:
                await page.cart.load()
                if not await page.cart.update_quantity(product_id, quantity):
                    return text(f"Error: {page.cart.error}")
                return text(f"Updated product {product_id} to quantity {quantity}.\n\n{format_cart(page.cart.snapshot)}")

        elif name == "storefront_remove_from_cart":
            product_id = arguments["product_id"]
            async with StorefrontPage(client, session) as page:
                await page.cart.load()
                if not await page.cart.remove(product_id):
                    return text(f"Error: {page.cart.error}")
                return text(f"Removed product {product_id} from cart.\n\n{format_cart(page.cart.snapshot)}")

        elif name == "storefront_clear_cart":
            async with StorefrontPage(client, session) as page:
                if not await page.cart.clear():
                    return text(f"Error: {page.cart.error}")
                return text("Cart cleared.")

        elif name == "storefront_get_wishlist":
            async with StorefrontPage(client, session) as page:
                if not await page.wishlist.load():
                    return text(f"Error: {page.wishlist.error}")
                products = page.wishlist.membership.products
                if not products:
                    return text("Your wishlist is empty. Nothing here yet.")
                lines = [f"Wishlist ({len(products)} item(s)):"]
                for i, product in enumerate(products, 1):
                    lines.extend(format_product(i, product))
                return text("\n".join(lines))

        elif name == "storefront_toggle_wishlist":
            product_id = arguments["product_id"]
            async with StorefrontPage(client, session) as page:
                await page.wishlist.load()
                was_member = page.wishlist.is_member(product_id)
                if not await page.wishlist.toggle(product_id):
                    return text(f"Error: {page.wishlist.error}")
                verb = "Removed" if was_member else "Added"
                where = "from" if was_member else "to"
                return text(f"{verb} product {product_id} {where} wishlist.")

        elif name == "storefront_move_to_cart":
            product_id = arguments["product_id"]
            product_result = await client.fetch_product(product_id)
            if isinstance(product_result, ApiFailure):
                return text(f"Error: Product {product_id} not found: {product_result.user_message}")
            async with StorefrontPage(client, session) as page:
                await page.load()
                if not await page.add_to_cart_and_remove_from_wishlist(product_result.data):
                    return text(f"Error: {page.cart.error}")
                message = f"Moved {product_result.data.title} to cart."
                if page.wishlist.is_member(product_id):
                    message += f"\nWarning: it is still in your wishlist ({page.wishlist.error})."
                return text(message)

        elif name == "storefront_get_orders":
            result = await client.fetch_orders()
            if isinstance(result, ApiFailure):
                if result.is_auth_failure:
                    session.clear()
                return text(f"Error: Failed to load orders: {result.user_message}")
            if not result.data:
                return text("You have no orders yet.")
            lines = [f"Orders ({len(result.data)}):"]
            for order in result.data:
                paid = "paid" if order.is_paid else "unpaid"
                delivered = "delivered" if order.is_delivered else "not delivered"
                lines.append(
                    f"  - {order.id}: {order.total_order_price} EGP, {order.item_count} item(s), {paid}, {delivered}"
                )
            return text("\n".join(lines))

        elif name == "storefront_checkout":
            flow = CheckoutFlow(client, session)
            try:
                await flow.load()
                address = ShippingAddress(
                    details=arguments.get("details", ""),
                    phone=arguments.get("phone", ""),
                    city=arguments.get("city", ""),
                )
                result = await flow.submit(address, arguments.get("payment_method", "cash"))
            finally:
                flow.close()
            if result.field_errors:
                errors = "\n".join(f"  - {field}: {message}" for field, message in result.field_errors.items())
                return text(f"{result.message}:\n{errors}")
            return text(result.message if result.success else f"Error: {result.message}")

        else:
            return text(f"Unknown tool: {name}")

    except Exception as e:
        logger.error(f"Error executing tool {name}: {e}", exc_info=True)
        return text(f"Error: {str(e)}")


async def main(new_settings: Optional[Settings] = None) -> None:
    """Main entry point for the MCP server."""
    configure(new_settings or Settings.from_env())

    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

    if settings.has_credentials:
        logger.info(f"Credentials loaded from environment for: {settings.email}")
    else:
        logger.warning("No credentials found in environment variables (STOREFRONT_EMAIL, STOREFRONT_PASSWORD)")
        logger.warning("Cart and wishlist operations will require manual login via storefront_login tool")

    logger.info("Starting Storefront MCP Server...")

    from mcp.server.stdio import stdio_server

    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(
                read_stream,
                write_stream,
                app.create_initialization_options(),
            )
    finally:
        await client.aclose()


if __name__ == "__main__":
    asyncio.run(main())
