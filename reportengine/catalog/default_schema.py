"""
Default schema of the billing dataset.

Declares the Stripe-style billing objects (customers, subscriptions,
invoices, payments, charges, refunds, prices, products, subscription items,
payment methods), their typed fields and the foreign-key relationships used
for related-field filters, SQL preview joins and integrity checks. Amounts are
held in minor currency units (cents).
"""

from reportengine.models.enums import FieldType, RelationshipType, UnitType
from reportengine.models.schema import Relationship, SchemaCatalog, SchemaField, SchemaObject

CURRENCY_FIELDS = frozenset(
    {
        "amount",
        "unit_amount",
        "amount_due",
        "amount_paid",
        "amount_received",
        "amount_refunded",
        "amount_captured",
        "balance",
        "subtotal",
        "total",
        "starting_balance",
        "ending_balance",
    }
)


def _field(name: str, label: str, field_type: FieldType) -> SchemaField:
    unit = UnitType.CURRENCY if field_type is FieldType.NUMBER and name in CURRENCY_FIELDS else None
    return SchemaField(name=name, label=label, type=field_type, unit=unit)


def _object(name: str, label: str, *fields: tuple[str, str, FieldType]) -> SchemaObject:
    return SchemaObject(
        name=name,
        label=label,
        fields=tuple(_field(*spec) for spec in fields),
        time_field="created",
    )


def _one_to_many(source: str, target: str, via: str, description: str) -> Relationship:
    return Relationship(
        from_object=source,
        to_object=target,
        type=RelationshipType.ONE_TO_MANY,
        via=via,
        description=description,
    )


ID, STRING, NUMBER, BOOLEAN, DATE = (
    FieldType.ID,
    FieldType.STRING,
    FieldType.NUMBER,
    FieldType.BOOLEAN,
    FieldType.DATE,
)

DEFAULT_SCHEMA = SchemaCatalog(
    objects=(
        _object(
            "customer", "Customer",
            ("id", "ID", ID),
            ("email", "Email", STRING),
            ("name", "Name", STRING),
            ("created", "Created", DATE),
            ("balance", "Balance", NUMBER),
            ("delinquent", "Delinquent", BOOLEAN),
        ),
        _object(
            "subscription", "Subscription",
            ("id", "ID", ID),
            ("customer_id", "Customer ID", ID),
            ("status", "Status", STRING),
            ("created", "Created", DATE),
            ("current_period_start", "Current Period Start", DATE),
            ("current_period_end", "Current Period End", DATE),
            ("cancel_at_period_end", "Cancel at Period End", BOOLEAN),
        ),
        _object(
            "invoice", "Invoice",
            ("id", "ID", ID),
            ("customer_id", "Customer ID", ID),
            ("subscription_id", "Subscription ID", ID),
            ("amount_due", "Amount Due", NUMBER),
            ("amount_paid", "Amount Paid", NUMBER),
            ("created", "Created", DATE),
            ("status", "Status", STRING),
            ("paid", "Paid", BOOLEAN),
        ),
        _object(
            "payment", "Payment",
            ("id", "ID", ID),
            ("customer_id", "Customer ID", ID),
            ("invoice_id", "Invoice ID", ID),
            ("amount", "Amount", NUMBER),
            ("currency", "Currency", STRING),
            ("created", "Created", DATE),
            ("status", "Status", STRING),
            ("captured", "Captured", BOOLEAN),
        ),
        _object(
            "charge", "Charge",
            ("id", "ID", ID),
            ("customer_id", "Customer ID", ID),
            ("payment_intent_id", "Payment Intent ID", ID),
            ("amount", "Amount", NUMBER),
            ("currency", "Currency", STRING),
            ("created", "Created", DATE),
            ("paid", "Paid", BOOLEAN),
            ("refunded", "Refunded", BOOLEAN),
        ),
        _object(
            "refund", "Refund",
            ("id", "ID", ID),
            ("charge_id", "Charge ID", ID),
            ("amount", "Amount", NUMBER),
            ("currency", "Currency", STRING),
            ("created", "Created", DATE),
            ("status", "Status", STRING),
            ("reason", "Reason", STRING),
        ),
        _object(
            "price", "Price",
            ("id", "ID", ID),
            ("product_id", "Product ID", ID),
            ("unit_amount", "Unit Amount", NUMBER),
            ("currency", "Currency", STRING),
            ("recurring_interval", "Recurring Interval", STRING),
            ("active", "Active", BOOLEAN),
            ("created", "Created", DATE),
        ),
        _object(
            "product", "Product",
            ("id", "ID", ID),
            ("name", "Name", STRING),
            ("description", "Description", STRING),
            ("active", "Active", BOOLEAN),
            ("created", "Created", DATE),
        ),
        _object(
            "subscription_item", "Subscription Item",
            ("id", "ID", ID),
            ("subscription_id", "Subscription ID", ID),
            ("price_id", "Price ID", ID),
            ("quantity", "Quantity", NUMBER),
            ("created", "Created", DATE),
        ),
        _object(
            "payment_method", "Payment Method",
            ("id", "ID", ID),
            ("customer_id", "Customer ID", ID),
            ("type", "Type", STRING),
            ("card_brand", "Card Brand", STRING),
            ("card_last4", "Card Last 4", STRING),
            ("created", "Created", DATE),
        ),
    ),
    relationships=(
        _one_to_many("customer", "subscription", "customer_id", "A customer can have multiple subscriptions"),
        _one_to_many("customer", "invoice", "customer_id", "A customer can have multiple invoices"),
        _one_to_many("customer", "payment", "customer_id", "A customer can have multiple payments"),
        _one_to_many("customer", "charge", "customer_id", "A customer can have multiple charges"),
        _one_to_many("customer", "payment_method", "customer_id", "A customer can have multiple payment methods"),
        _one_to_many("subscription", "invoice", "subscription_id", "A subscription can have multiple invoices"),
        _one_to_many("subscription", "subscription_item", "subscription_id", "A subscription can have multiple items"),
        _one_to_many("invoice", "payment", "invoice_id", "An invoice can have multiple payments"),
        _one_to_many("payment", "charge", "payment_intent_id", "A payment can have multiple charges"),
        _one_to_many("charge", "refund", "charge_id", "A charge can have multiple refunds"),
        _one_to_many("product", "price", "product_id", "A product can have multiple prices"),
        _one_to_many("price", "subscription_item", "price_id", "A price can be used in multiple subscription items"),
    ),
)
