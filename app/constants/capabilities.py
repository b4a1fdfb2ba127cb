# app/constants/capabilities.py

# Actions are "<kind>.<event>" for sales documents and "<area>.<verb>" elsewhere.
# "*" grants everything; "<kind>.*" grants every event on that kind.
ROLE_CAPABILITIES: dict[str, frozenset[str]] = {
    "admin": frozenset({"*"}),
    "sales_manager": frozenset({
        "quote.*",
        "order.*",
        "invoice.view",
        "currency.view",
        "activity.view",
    }),
    "sales": frozenset({
        "quote.view", "quote.create", "quote.edit", "quote.delete",
        "quote.send", "quote.reopen",
        "order.view", "order.create", "order.edit", "order.delete",
        "order.send", "order.reopen",
        "invoice.view",
        "currency.view",
    }),
    "cashier": frozenset({
        "quote.view", "quote.convert",
        "order.view", "order.convert",
        "invoice.view",
        "currency.view",
    }),
    "accountant": frozenset({
        "quote.view",
        "order.view",
        "invoice.view",
        "currency.view", "currency.manage",
        "activity.view",
    }),
}
