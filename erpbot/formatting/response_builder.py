"""Reply construction: user-facing French texts and inline keyboards."""

from typing import Any, Optional, Sequence

from erpbot.config import settings
from erpbot.formatting.markdown import bold, md
from erpbot.schemas.customer_schema import CustomerRecord
from erpbot.schemas.quotation_schema import Quotation
from erpbot.schemas.reply_schema import KeyboardButton, Reply

Keyboard = list[list[KeyboardButton]]

MESSAGE_ERROR = "Une erreur est survenue lors du traitement de votre message."
REQUEST_ERROR = "Une erreur est survenue lors du traitement de votre demande."
UNKNOWN_COMMAND = "Commande non reconnue. Tapez /help pour voir les commandes disponibles."

_FEATURE_NAMES = {
    "quotations": "devis",
    "invoices": "factures",
    "reports": "rapports",
}


def _rows(*buttons: tuple[str, str]) -> Keyboard:
    return [[KeyboardButton(label=label, action=action)] for label, action in buttons]


# ---------------------------------------------------------------------- #
# Keyboards
# ---------------------------------------------------------------------- #

def main_menu_keyboard() -> Keyboard:
    return _rows(
        ("👤 Créer un client", "create_customer"),
        ("📋 Voir les clients", "list_customers"),
        ("📝 Créer un devis", "create_quotation"),
        ("📄 Voir les devis", "get_quotation"),
        ("📄 Voir les factures", "get_invoices"),
        ("📊 Rapports", "reports_menu"),
        ("❓ Aide", "help"),
    )


def reports_menu_keyboard() -> Keyboard:
    keyboard = [
        [KeyboardButton(label="📊 Ventes", action="sales_report"),
         KeyboardButton(label="🛒 Achats", action="purchase_report")],
        [KeyboardButton(label="👥 Clients", action="customer_report"),
         KeyboardButton(label="📄 Factures", action="invoice_report")],
        [KeyboardButton(label="📝 Devis", action="quotation_report"),
         KeyboardButton(label="📦 Stock", action="stock_report")],
        [KeyboardButton(label="📋 Articles", action="items_report"),
         KeyboardButton(label="📈 Métriques", action="metrics")],
        [KeyboardButton(label="🗂 Tableau de bord", action="dashboard"),
         KeyboardButton(label="💰 Résumé financier", action="financial_report")],
    ]
    return keyboard + _rows(
        ("🏪 Rapports POS", "pos_reports_menu"),
        ("🏠 Menu principal", "back_to_main"),
    )


def pos_reports_menu_keyboard() -> Keyboard:
    return _rows(
        ("🏪 Ventes POS", "pos_sales_report"),
        ("📦 Articles POS", "pos_items_report"),
        ("👨‍💼 Caissiers", "pos_cashiers_report"),
        ("📅 Aujourd'hui", "pos_today"),
        ("📊 Dashboard POS", "pos_dashboard"),
        ("⬅️ Rapports", "reports_menu"),
    )


# ---------------------------------------------------------------------- #
# Fixed replies
# ---------------------------------------------------------------------- #

def build_welcome_response() -> Reply:
    text = "\n".join([
        "👋 Bonjour ! Je suis votre assistant de gestion client.",
        "",
        "Je peux vous aider à:",
        "• Créer et gérer vos clients",
        "• Créer et consulter les devis",
        "• Consulter factures et rapports",
        "",
        "Comment puis-je vous aider aujourd'hui ?",
    ])
    return Reply(text=text, keyboard=main_menu_keyboard())


def build_help_response() -> Reply:
    text = "\n".join([
        "🤖 *Bot de Gestion Client*",
        "",
        "Je peux vous aider avec:",
        "",
        "• Créer un nouveau client",
        "• Consulter la liste des clients",
        "• Créer et gérer les devis",
        "• Générer des rapports",
        "",
        "Exemples de commandes:",
        '• "Créer un client Dupont dupont@email.com"',
        '• "5 pains, 2 gateaux chocolat pour le client Dupont avec email dupont@example.com"',
        '• "Voir mes clients"',
        "",
        "Commandes: /start /help /clients /reports /rapport <nom> /devis <id> /renvoyer <id> [email]",
        "",
        "Que souhaitez-vous faire ?",
    ])
    return Reply(text=text, keyboard=main_menu_keyboard())


def build_fallback_response() -> Reply:
    text = "🤔 Désolé, je n'ai pas compris votre message.\n\nVoici ce que je peux faire pour vous:"
    return Reply(text=text, keyboard=main_menu_keyboard())


def build_clarify_response(intent_name: Optional[str], confidence: Optional[float]) -> Reply:
    """Ask the user to rephrase; the percentage is the rounded confidence."""
    percent = round((confidence or 0.0) * 100)
    text = (
        f"🤔 Je ne suis pas sûr de comprendre votre demande ({percent}% de confiance).\n\n"
        "Pouvez-vous reformuler ou utiliser les boutons ci-dessous ?"
    )
    return Reply(text=text, keyboard=main_menu_keyboard())


def build_unknown_callback_response() -> Reply:
    return Reply(
        text="🤔 Action non reconnue. Voici le menu principal:",
        keyboard=main_menu_keyboard(),
    )


def build_main_menu_response() -> Reply:
    return Reply(text="🏠 Retour au menu principal", parse_mode=None, keyboard=main_menu_keyboard())


def build_reports_menu_response() -> Reply:
    return Reply(
        text="📊 *Menu des Rapports*\n\nChoisissez le type de rapport souhaité :",
        keyboard=reports_menu_keyboard(),
    )


def build_pos_reports_menu_response() -> Reply:
    return Reply(
        text="🏪 *Rapports Ventes POS*\n\nChoisissez le rapport souhaité :",
        keyboard=pos_reports_menu_keyboard(),
    )


def build_create_customer_prompt() -> Reply:
    text = (
        "Parfait ! Dites-moi le nom et l'email du client à créer.\n\n"
        'Exemple: "Créer Dupont avec email dupont@example.com"'
    )
    return Reply(text=text, force_reply=True)


def build_create_quotation_prompt() -> Reply:
    text = (
        "📝 Création de devis\n\n"
        "Dites-moi les articles et le client (ex: '5 pains, 2 gateaux chocolat "
        "pour le client Dupont avec email dupont@example.com')"
    )
    return Reply(text=text, parse_mode=None, force_reply=True)


def build_error_response(message: str) -> Reply:
    return Reply(text=f"❌ {md(message)}")


def build_validation_error_response(errors: Sequence[str]) -> Reply:
    lines = ["❌ Erreurs de validation:"]
    lines += [f"{i}. {md(error)}" for i, error in enumerate(errors, start=1)]
    return Reply(text="\n".join(lines))


def build_feature_unavailable_response(feature: str) -> Reply:
    name = _FEATURE_NAMES.get(feature, feature)
    return Reply(text=f"❌ Fonction {name} non disponible (ERPNext non configuré)")


def build_rate_limited_response(message: str) -> Reply:
    return Reply(text=f"⏳ {message}", parse_mode=None)


# ---------------------------------------------------------------------- #
# Customer, quotation and invoice replies
# ---------------------------------------------------------------------- #

def build_customer_created_response(customer: CustomerRecord) -> Reply:
    text = f"✅ Client {bold(customer.name)} créé avec succès !\n\nQue souhaitez-vous faire maintenant ?"
    keyboard = _rows(
        ("👤 Créer un autre client", "create_customer"),
        ("📝 Créer un devis", "create_quotation"),
        ("📄 Voir les devis", "get_quotation"),
        ("❓ Aide", "help"),
    )
    return Reply(text=text, keyboard=keyboard)


def build_customer_list_response(customers: Sequence[CustomerRecord]) -> Reply:
    if not customers:
        return Reply(
            text="📝 Aucun client enregistré pour le moment.",
            keyboard=main_menu_keyboard(),
        )
    lines = ["📋 Liste des clients:", ""]
    for i, customer in enumerate(customers, start=1):
        lines.append(f"{i}. {bold(customer.name)} ({md(customer.email or 'sans email')})")
        if customer.created_at:
            lines.append(f"   Créé le: {md(customer.created_at[:10])}")
    return Reply(text="\n".join(lines), keyboard=main_menu_keyboard())


def build_quotation_list_response(quotations: Sequence[dict[str, Any]]) -> Reply:
    if not quotations:
        return Reply(text="📭 Aucun devis trouvé.", keyboard=main_menu_keyboard())
    currency = settings.backend.currency
    lines = ["📄 Devis récents:", ""]
    for i, q in enumerate(quotations, start=1):
        lines.append(f"{i}. {bold(q.get('name'))} - {md(q.get('party_name') or 'N/A')}")
        lines.append(
            f"   {md(q.get('total') or 0)} {currency} | {md(q.get('status') or 'N/A')} | "
            f"{md(q.get('transaction_date') or '')}"
        )
    return Reply(text="\n".join(lines), keyboard=main_menu_keyboard())


def build_invoice_list_response(invoices: Sequence[dict[str, Any]]) -> Reply:
    if not invoices:
        return Reply(text="📭 Aucune facture trouvée.", keyboard=main_menu_keyboard())
    currency = settings.backend.currency
    lines = ["🧾 Factures récentes:", ""]
    for i, inv in enumerate(invoices, start=1):
        lines.append(f"{i}. {bold(inv.get('name'))} - {md(inv.get('customer') or 'N/A')}")
        lines.append(
            f"   {md(inv.get('total') or 0)} {currency} | {md(inv.get('status') or 'N/A')} | "
            f"{md(inv.get('posting_date') or '')}"
        )
    return Reply(text="\n".join(lines), keyboard=main_menu_keyboard())


def format_quotation_summary(quotation: Quotation, title: str = "Devis créé") -> str:
    currency = settings.backend.currency
    lines = [
        f"📄 {bold(f'{title}: {quotation.id}')}",
        "",
        f"👤 *Client:* {md(quotation.customer_name or quotation.customer_id or 'N/A')}",
        f"📧 *Email:* {md(quotation.customer_email or 'N/A')}",
        "",
        "🛒 *Articles:*",
    ]
    for i, line in enumerate(quotation.items, start=1):
        lines.append(f"{i}. {line.quantity:g}x {md(line.item_name)}")
        if line.unit_price:
            lines.append(
                f"   Prix: {line.unit_price:g} {currency} × {line.quantity:g} = "
                f"{(line.total_price or 0):g} {currency}"
            )
    if quotation.total:
        lines += ["", f"💰 *Total: {quotation.total:.2f} {currency}*"]
    lines.append("")
    if quotation.transaction_date:
        lines.append(f"📅 *Date:* {md(quotation.transaction_date)}")
    if quotation.valid_till:
        lines.append(f"⏳ *Valide jusqu'au:* {md(quotation.valid_till)}")
    lines.append(f"📊 *Statut:* {md(quotation.status or 'Draft')}")
    return "\n".join(lines)


def build_quotation_created_response(quotation: Quotation, email_sent: bool) -> Reply:
    summary = format_quotation_summary(quotation)
    if email_sent:
        notice = f"✅ PDF envoyé avec succès à {md(quotation.customer_email)}"
    else:
        notice = "⚠️ Devis créé mais problème d'envoi email. Vous pouvez le récupérer manuellement."
    text = f"{summary}\n\n{notice}\n\nQue souhaitez-vous faire maintenant ?"
    return Reply(text=text, keyboard=main_menu_keyboard())
