"""
Markdown report rendering.

Values read from ERPNext rows are escaped, or stripped of asterisks when
they sit inside a bold span.

One line formatter per report kind; anything else falls back to a generic
``key: value`` listing. Row reports are cut at the display limit and carry
a truncation notice when the backend returned at least that many rows.
Aggregate reports (dashboard, financial, metrics, POS period and
dashboard) have their own summary renderers.
"""

from collections import OrderedDict
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from erpbot.config import settings
from erpbot.formatting.markdown import bold, md
from erpbot.routing.router import ReportType

Row = dict[str, Any]

NO_DATA = "📭 Aucune donnée trouvée pour ce rapport."

REPORT_TITLES: dict[ReportType, tuple[str, str]] = {
    ReportType.SALES: ("📊 Rapport des Ventes", "Factures de vente soumises"),
    ReportType.CUSTOMERS: ("👥 Rapport des Clients", "Liste des clients enregistrés"),
    ReportType.PURCHASES: ("🛒 Rapport des Achats", "Factures d'achat soumises"),
    ReportType.INVOICES: ("📄 Rapport des Factures", "Factures clients avec statuts"),
    ReportType.QUOTATIONS: ("📝 Rapport des Devis", "Devis clients actifs"),
    ReportType.STOCK: ("📦 Rapport de Stock", "Niveaux de stock par article"),
    ReportType.ITEMS: ("📋 Catalogue des Articles", "Articles disponibles"),
    ReportType.POS_SALES: ("🏪 Rapport des Ventes POS", "Transactions de caisse"),
    ReportType.POS_ITEMS: ("🏪 Articles POS", "Ventes par article en caisse"),
    ReportType.POS_CASHIERS: ("👨‍💼 Performance Caissiers", "Statistiques par caissier"),
}


def _num(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _date(value: Any) -> str:
    return md(str(value)[:10]) if value else "N/A"


def _text(value: Any, default: str = "N/A") -> str:
    return md(value) if value else default


def _generated_at(timestamp: Optional[str] = None) -> str:
    moment = datetime.fromisoformat(timestamp) if timestamp else datetime.now()
    return moment.strftime("%d/%m/%Y %H:%M")


# ---------------------------------------------------------------------- #
# Row formatters
# ---------------------------------------------------------------------- #

def format_financial_rows(rows: Sequence[Row], currency: str) -> list[str]:
    lines: list[str] = []
    total = 0.0
    for i, row in enumerate(rows, start=1):
        amount = _num(row.get("total") or row.get("grand_total"))
        lines += [
            f"{i}. {bold(row.get('name'))}",
            f"   Client/Fournisseur: {_text(row.get('customer') or row.get('supplier'))}",
            f"   Date: {_date(row.get('posting_date'))}",
            f"   Montant: {amount:g} {currency}",
            f"   Statut: {_text(row.get('status'))}",
        ]
        if row.get("outstanding_amount"):
            lines.append(f"   Restant: {md(row['outstanding_amount'])} {currency}")
        lines.append("")
        total += amount
    lines.append(f"💰 *Total: {total:.2f} {currency}* ({len(rows)} documents)")
    return lines


def format_customer_rows(rows: Sequence[Row], currency: str) -> list[str]:
    lines: list[str] = []
    for i, row in enumerate(rows, start=1):
        lines.append(f"{i}. {bold(row.get('customer_name') or row.get('name'))}")
        if row.get("email_id"):
            lines.append(f"   📧 {md(row['email_id'])}")
        if row.get("mobile_no"):
            lines.append(f"   📱 {md(row['mobile_no'])}")
        if row.get("territory"):
            lines.append(f"   📍 {md(row['territory'])}")
        if row.get("customer_group"):
            lines.append(f"   🏢 {md(row['customer_group'])}")
        lines += [f"   📅 Créé: {_date(row.get('creation'))}", ""]
    lines.append(f"👥 *Total: {len(rows)} clients*")
    return lines


def format_quotation_rows(rows: Sequence[Row], currency: str) -> list[str]:
    lines: list[str] = []
    total = 0.0
    for i, row in enumerate(rows, start=1):
        amount = _num(row.get("total"))
        lines += [
            f"{i}. {bold(row.get('name'))}",
            f"   Client: {_text(row.get('party_name'))}",
            f"   Date: {_date(row.get('transaction_date'))}",
            f"   Montant: {amount:g} {currency}",
            f"   Statut: {_text(row.get('status'))}",
        ]
        if row.get("valid_till"):
            lines.append(f"   Valide jusqu'au: {_date(row['valid_till'])}")
        lines.append("")
        total += amount
    lines.append(f"📊 *Total devis: {total:.2f} {currency}* ({len(rows)} devis)")
    return lines


def format_stock_rows(rows: Sequence[Row], currency: str) -> list[str]:
    grouped: "OrderedDict[str, list[Row]]" = OrderedDict()
    for row in rows:
        grouped.setdefault(str(row.get("item_code")), []).append(row)

    lines: list[str] = []
    for i, (item_code, entries) in enumerate(grouped.items(), start=1):
        first = entries[0]
        quantity = sum(_num(e.get("actual_qty")) for e in entries)
        lines += [
            f"{i}. {bold(item_code)}",
            f"   Quantité: {quantity:g}",
            f"   Valeur: {_num(first.get('valuation_rate')):g} {currency}/unité",
            f"   Entrepôt: {_text(first.get('warehouse'))}",
            "",
        ]
    lines.append(f"📦 *{len(grouped)} articles en stock*")
    return lines


def format_item_rows(rows: Sequence[Row], currency: str) -> list[str]:
    lines: list[str] = []
    for i, row in enumerate(rows, start=1):
        lines += [
            f"{i}. {bold(row.get('item_name') or row.get('name'))}",
            f"   Code: {md(row.get('name'))}",
            f"   Catégorie: {_text(row.get('item_group'))}",
            f"   Unité: {_text(row.get('stock_uom'))}",
            f"   Prix de vente: {_num(row.get('valuation_rate')):g} {currency}",
        ]
        if row.get("last_purchase_rate"):
            lines.append(f"   Dernier achat: {md(row['last_purchase_rate'])} {currency}")
        lines.append("")
    lines.append(f"📋 *Total: {len(rows)} articles*")
    return lines


def format_pos_invoice_rows(rows: Sequence[Row], currency: str) -> list[str]:
    lines: list[str] = []
    total = 0.0
    for i, row in enumerate(rows, start=1):
        amount = _num(row.get("grand_total") or row.get("total"))
        lines += [
            f"{i}. {bold(row.get('name'))}",
            f"   Client: {_text(row.get('customer'), 'Anonyme')}",
            f"   Date: {_date(row.get('posting_date'))} {md(str(row.get('posting_time') or '')[:5])}",
            f"   Total: {amount:g} {currency}",
            f"   Payé: {_num(row.get('paid_amount')):g} {currency}",
            f"   Monnaie: {_num(row.get('change_amount')):g} {currency}",
            f"   Caissier: {_text(row.get('cashier'))}",
            f"   Statut: {_text(row.get('status'))}",
            "",
        ]
        total += amount
    lines.append(f"💰 *Total POS: {total:.2f} {currency}* ({len(rows)} transactions)")
    return lines


def format_pos_item_rows(rows: Sequence[Row], currency: str) -> list[str]:
    lines: list[str] = []
    total_qty = 0.0
    total_amount = 0.0
    for i, row in enumerate(rows, start=1):
        lines += [
            f"{i}. {bold(row.get('item_name'))}",
            f"   Code: {md(row.get('item_code'))}",
            f"   Quantité totale: {_num(row.get('total_qty')):g}",
            f"   Montant total: {_num(row.get('total_amount')):.2f} {currency}",
            f"   Prix moyen: {_num(row.get('avg_price')):.2f} {currency}",
            f"   Nombre de ventes: {md(row.get('sales_count', 0))}",
            f"   Dernière vente: {_date(row.get('last_sale'))}",
            "",
        ]
        total_qty += _num(row.get("total_qty"))
        total_amount += _num(row.get("total_amount"))
    lines.append(f"📊 *Total POS: {total_qty:g} articles - {total_amount:.2f} {currency}*")
    return lines


def format_pos_cashier_rows(rows: Sequence[Row], currency: str) -> list[str]:
    lines: list[str] = []
    total_sales = 0.0
    total_invoices = 0
    for i, row in enumerate(rows, start=1):
        sales = _num(row.get("total_sales"))
        count = int(row.get("total_invoices") or 0)
        basket = sales / count if count else 0.0
        lines += [
            f"{i}. {bold(row.get('cashier'))}",
            f"   Transactions: {count}",
            f"   Ventes totales: {sales:.2f} {currency}",
            f"   Montant perçu: {_num(row.get('total_paid')):.2f} {currency}",
            f"   Panier moyen: {basket:.2f} {currency}",
            "",
        ]
        total_sales += sales
        total_invoices += count
    lines.append(
        f"👥 *Équipe POS: {len(rows)} caissiers - {total_sales:.2f} {currency} "
        f"({total_invoices} transactions)*"
    )
    return lines


def format_generic_rows(rows: Sequence[Row], currency: str) -> list[str]:
    lines: list[str] = []
    for i, row in enumerate(rows, start=1):
        label = row.get("name") or row.get("title") or f"Élément {i}"
        lines.append(f"{i}. {bold(label)}")
        for key, value in row.items():
            if key != "name" and value and not isinstance(value, (dict, list)):
                lines.append(f"   {md(key)}: {md(value)}")
        lines.append("")
    lines.append(f"📊 *{len(rows)} éléments*")
    return lines


ROW_FORMATTERS: dict[ReportType, Callable[[Sequence[Row], str], list[str]]] = {
    ReportType.SALES: format_financial_rows,
    ReportType.PURCHASES: format_financial_rows,
    ReportType.INVOICES: format_financial_rows,
    ReportType.CUSTOMERS: format_customer_rows,
    ReportType.QUOTATIONS: format_quotation_rows,
    ReportType.STOCK: format_stock_rows,
    ReportType.ITEMS: format_item_rows,
    ReportType.POS_SALES: format_pos_invoice_rows,
    ReportType.POS_ITEMS: format_pos_item_rows,
    ReportType.POS_CASHIERS: format_pos_cashier_rows,
}


def format_row_report(
    title: str,
    description: str,
    rows: Sequence[Row],
    report_type: Optional[ReportType] = None,
    display_limit: int = settings.reports.display_limit,
    currency: str = settings.backend.currency,
) -> str:
    """Render a titled row report, at most ``display_limit`` rows."""
    lines = [title, "", f"📋 {description}", ""]
    if not rows:
        lines.append(NO_DATA)
    else:
        formatter = ROW_FORMATTERS.get(report_type, format_generic_rows)  # type: ignore[arg-type]
        lines += formatter(list(rows)[:display_limit], currency)
        if len(rows) >= display_limit:
            lines += ["", f"⚠️ Affichage limité aux {display_limit} premiers résultats"]
    lines += ["", f"📅 Généré le: {_generated_at()}"]
    return "\n".join(lines)


# ---------------------------------------------------------------------- #
# Aggregate renderers
# ---------------------------------------------------------------------- #

def format_dashboard(
    data: dict[str, Any],
    currency: str = settings.backend.currency,
    low_stock_threshold: float = settings.reports.low_stock_threshold,
) -> str:
    lines = ["📊 *Tableau de Bord ERPNext*", ""]
    sales = data.get("sales") or []
    if sales:
        total = sum(_num(s.get("grand_total")) for s in sales)
        lines += [f"💰 *Ventes récentes:* {total:.2f} {currency}", f"   {len(sales)} factures", ""]
    customers = data.get("customers") or []
    if customers:
        lines += [f"👥 *Clients actifs:* {len(customers)}", ""]
    quotations = data.get("quotations") or []
    if quotations:
        total = sum(_num(q.get("total")) for q in quotations)
        lines += [f"📝 *Devis en cours:* {total:.2f} {currency}", f"   {len(quotations)} devis", ""]
    low_stock = [s for s in data.get("stock") or [] if _num(s.get("actual_qty")) <= low_stock_threshold]
    if low_stock:
        lines += [f"⚠️ *Stock faible:* {len(low_stock)} articles", ""]
    lines.append(f"📅 Dernière mise à jour: {_generated_at(data.get('timestamp'))}")
    return "\n".join(lines)


def _report_total(rows: Sequence[Row]) -> float:
    return sum(_num(r.get("total")) for r in rows)


def format_financial_summary(data: dict[str, Any], currency: str = settings.backend.currency) -> str:
    sales = data.get("sales") or []
    purchases = data.get("purchases") or []
    period = data.get("period", "monthly")
    lines = [f"💰 {bold(f'Résumé Financier - {period}')}", ""]
    if sales:
        lines.append(f"📈 *Ventes:* {_report_total(sales):.2f} {currency}")
    if purchases:
        lines.append(f"📉 *Achats:* {_report_total(purchases):.2f} {currency}")
    if sales or purchases:
        margin = _report_total(sales) - _report_total(purchases)
        lines.append(f"💎 *Marge:* {margin:.2f} {currency}")
    else:
        lines.append(NO_DATA)
    lines += ["", f"📅 Généré le: {_generated_at(data.get('generated_at'))}"]
    return "\n".join(lines)


def format_metrics(data: dict[str, Any], currency: str = settings.backend.currency) -> str:
    lines = [
        "📈 *Métriques de Performance*",
        "",
        f"👥 *Clients totaux:* {data.get('total_customers', 0)}",
        f"💰 *Ventes totales:* {_num(data.get('total_sales')):.2f} {currency}",
        f"⏳ *Factures en attente:* {data.get('pending_invoices', 0)}",
        f"📦 *Articles stock faible:* {data.get('low_stock_items', 0)}",
        "",
        f"📅 Généré le: {_generated_at(data.get('generated_at'))}",
    ]
    return "\n".join(lines)


def format_pos_period(
    data: dict[str, Any], period_label: str, currency: str = settings.backend.currency
) -> str:
    summary = data.get("summary") or {}
    lines = [
        f"🏪 {bold(f'Rapport POS - {period_label}')}",
        "",
        f"💰 *Ventes totales:* {_num(summary.get('total_sales')):.2f} {currency}",
        f"🧾 *Nombre de transactions:* {summary.get('total_invoices', 0)}",
        f"🛒 *Panier moyen:* {_num(summary.get('avg_invoice')):.2f} {currency}",
        f"👥 *Nombre de caissiers:* {summary.get('total_cashiers', 0)}",
        "",
    ]
    top_items = (data.get("top_items") or [])[:3]
    if top_items:
        lines.append("🏆 *Top Articles:*")
        lines += [
            f"{i}. {md(item.get('item_name'))}: {_num(item.get('total_qty')):g} unités"
            for i, item in enumerate(top_items, start=1)
        ]
        lines.append("")
    cashiers = (data.get("cashier_performance") or [])[:3]
    if cashiers:
        lines.append("👨‍💼 *Performance Caissiers:*")
        lines += [
            f"{i}. {md(c.get('cashier'))}: {_num(c.get('total_sales')):.2f} {currency}"
            for i, c in enumerate(cashiers, start=1)
        ]
        lines.append("")
    lines.append(f"📅 Généré le: {_generated_at(data.get('generated_at'))}")
    return "\n".join(lines)


def format_pos_dashboard(data: dict[str, Any], currency: str = settings.backend.currency) -> str:
    lines = ["🏪 *Dashboard Ventes POS*", ""]
    for key, label in (("today", "Aujourd'hui"), ("yesterday", "Hier"), ("week", "Cette semaine")):
        summary = (data.get(key) or {}).get("summary") or {}
        lines += [
            f"📅 *{label}:*",
            f"   💰 {_num(summary.get('total_sales')):.2f} {currency}",
            f"   🧾 {summary.get('total_invoices', 0)} transactions",
            "",
        ]
    top_items = (data.get("top_selling_items") or [])[:5]
    if top_items:
        lines.append("🏆 *Articles les plus vendus:*")
        lines += [
            f"{i}. {md(item.get('item_name'))} ({_num(item.get('total_qty')):g} unités)"
            for i, item in enumerate(top_items, start=1)
        ]
        lines.append("")
    lines.append(f"📅 Dernière mise à jour: {_generated_at(data.get('last_updated'))}")
    return "\n".join(lines)
