from app.constants.activity_codes import ActivityCode


ACTIVITY_TEMPLATES = {
    # ---------------- SALES DOCUMENTS ----------------
    ActivityCode.CREATE_DOCUMENT:
        "{actor_role} ({actor_email}) created {document_label} {target_name}",

    ActivityCode.UPDATE_DOCUMENT:
        "{actor_role} ({actor_email}) updated {document_label} {target_name}: {changes}",

    ActivityCode.DELETE_DOCUMENT:
        "{actor_role} ({actor_email}) deleted {document_label} {target_name}",

    ActivityCode.SEND_DOCUMENT:
        "{actor_role} ({actor_email}) sent {document_label} {target_name} to customer",

    ActivityCode.ACCEPT_DOCUMENT:
        "{actor_role} ({actor_email}) marked {document_label} {target_name} as accepted",

    ActivityCode.REJECT_DOCUMENT:
        "{actor_role} ({actor_email}) marked {document_label} {target_name} as rejected: {reason}",

    ActivityCode.FULFILL_DOCUMENT:
        "{actor_role} ({actor_email}) marked {document_label} {target_name} as delivered",

    ActivityCode.REOPEN_DOCUMENT:
        "{actor_role} ({actor_email}) reopened {document_label} {target_name} "
        "valid until {valid_until}",

    ActivityCode.CONVERT_DOCUMENT_TO_INVOICE:
        "{actor_role} ({actor_email}) converted {document_label} {target_name} "
        "to invoice {invoice_ref}",

    # ---------------- INVOICES ----------------
    ActivityCode.CREATE_INVOICE:
        "{actor_role} ({actor_email}) created invoice {target_name} from {source_ref}",

    # ---------------- CURRENCIES ----------------
    ActivityCode.CREATE_CURRENCY:
        "{actor_role} ({actor_email}) created currency {target_name}",

    ActivityCode.RECORD_EXCHANGE_RATE:
        "{actor_role} ({actor_email}) recorded rate {rate} for {target_name} "
        "effective {effective_date}",
}
