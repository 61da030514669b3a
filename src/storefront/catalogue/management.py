"""Catalogue administration: commands and handler.

Creating a product also opens its stock record in the ledger; restocking
resets that record to the counted quantity.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.domain import storefront
from storefront.inventory import get_stock_ledger
from storefront.inventory.port import StockOperation

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Product")
class CreateProduct:
    title = String(required=True, max_length=200)
    sku = String(required=True, max_length=64)
    price = Float(required=True, min_value=0.0)
    description = Text()
    brand = String(max_length=100)
    image_url = String(max_length=500)
    stock = Integer(default=0, min_value=0)
    low_stock_threshold = Integer(default=10, min_value=0)


@storefront.command(part_of="Product")
class ChangeProductPrice:
    product_id = Identifier(required=True)
    price = Float(required=True, min_value=0.0)


@storefront.command(part_of="Product")
class ActivateProduct:
    product_id = Identifier(required=True)


@storefront.command(part_of="Product")
class DeactivateProduct:
    product_id = Identifier(required=True)


@storefront.command(part_of="Product")
class RestockProduct:
    """Correct a product's stock: ``add`` or ``subtract`` units, or ``set`` a counted level."""

    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=0)
    operation = String(max_length=10, default=StockOperation.ADD.value)


@storefront.command_handler(part_of=Product)
class ManageProductHandler:
    @handle(CreateProduct)
    def create_product(self, command):
        repo = current_domain.repository_for(Product)
        if repo.find_by_sku(command.sku) is not None:
            raise ValidationError({"sku": [f"SKU {command.sku} is already in use"]})

        product = Product.create(
            title=command.title,
            sku=command.sku,
            price=command.price,
            description=command.description,
            brand=command.brand,
            image_url=command.image_url,
            low_stock_threshold=command.low_stock_threshold,
        )
        repo.add(product)
        get_stock_ledger().register(str(product.id), command.stock or 0, product.low_stock_threshold)

        logger.info("Product created", product_id=str(product.id), sku=product.sku, stock=command.stock or 0)
        return str(product.id)

    @handle(ChangeProductPrice)
    def change_price(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.require(command.product_id)
        product.change_price(command.price)
        repo.add(product)

    @handle(ActivateProduct)
    def activate(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.require(command.product_id)
        product.activate()
        repo.add(product)

    @handle(DeactivateProduct)
    def deactivate(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.require(command.product_id)
        product.deactivate()
        repo.add(product)

    @handle(RestockProduct)
    def restock(self, command):
        product = current_domain.repository_for(Product).require(command.product_id)
        ledger = get_stock_ledger()
        if ledger.level(str(product.id)) is None:
            ledger.register(str(product.id), 0, product.low_stock_threshold)
        level = ledger.adjust(str(product.id), command.operation, command.quantity)
        logger.info(
            "Product restocked",
            product_id=str(product.id),
            operation=command.operation,
            available=level.available,
        )
        return level.available
