import csv
import io
import json
from datetime import datetime

from models import CharacterSummary
from utils import format_number, short_address

ATTRIBUTE_NAMES = ["wisdom", "adventure", "aesthetic", "social", "greed", "stability"]


def _attribute_rows(character: CharacterSummary) -> list[tuple[str, int]]:
    values = character.attributes.model_dump()
    return [(name.title(), values[name]) for name in ATTRIBUTE_NAMES]


def to_csv(character: CharacterSummary) -> bytes:
    """Export a character sheet to CSV."""
    out = io.StringIO()
    w = csv.writer(out)

    w.writerow(["WALLET CHARACTER SHEET"])
    w.writerow(["Generated", datetime.now().strftime("%Y-%m-%d %H:%M:%S")])
    w.writerow([])

    # ── Character ─────────────────────────────────────────────────────
    w.writerow(["CHARACTER"])
    w.writerow(["Address", character.address])
    w.writerow(["Class", character.character_class.value])
    w.writerow(["Rank", character.rank.value])
    w.writerow(["Total Transactions", character.total_transactions])
    w.writerow(["Active Time", character.active_time.display_text])
    w.writerow(["Active Years", character.active_years])
    w.writerow(["Chains Used", ", ".join(character.chains_used)])
    w.writerow([])

    # ── Attributes ────────────────────────────────────────────────────
    w.writerow(["ATTRIBUTES"])
    for label, value in _attribute_rows(character):
        w.writerow([label, value])
    w.writerow([])

    # ── Analysis ──────────────────────────────────────────────────────
    analysis = character.analysis
    w.writerow(["ANALYSIS"])
    w.writerow(["NFT Transactions", analysis.nft_count])
    w.writerow(["DeFi Protocols", ", ".join(analysis.defi_protocols)])
    w.writerow(["Governance Transactions", analysis.governance_transactions])
    w.writerow(["Bridge Transactions", analysis.bridge_transactions])
    w.writerow(["Unique Contracts", analysis.unique_contracts])
    w.writerow([])

    w.writerow(["CONTRACT INTERACTIONS"])
    w.writerow(["Protocol", "Category", "Count", "Addresses"])
    for item in analysis.contract_interactions:
        w.writerow([item.protocol, item.category, item.count, " ".join(item.addresses)])
    w.writerow([])

    if character.description:
        w.writerow(["DESCRIPTION"])
        for line in character.description.split("\n"):
            w.writerow([line])

    return out.getvalue().encode("utf-8")


def to_json(character: CharacterSummary) -> bytes:
    """Export a character sheet as formatted JSON."""
    return json.dumps(character.model_dump(mode="json"), indent=2).encode("utf-8")


def to_excel(character: CharacterSummary) -> bytes:
    """Export a character sheet to a formatted Excel workbook."""
    import openpyxl
    from openpyxl.styles import Alignment, Font, PatternFill

    wb = openpyxl.Workbook()

    # ── Character Sheet ───────────────────────────────────────────────
    ws = wb.active
    ws.title = "Character"

    accent = PatternFill(start_color="6c5ce7", end_color="6c5ce7", fill_type="solid")
    dark = PatternFill(start_color="1a1a2e", end_color="1a1a2e", fill_type="solid")
    white_bold = Font(bold=True, color="FFFFFF")
    bold = Font(bold=True)

    ws.merge_cells("A1:D1")
    ws["A1"] = f"{character.character_class.value} ({character.rank.value})"
    ws["A1"].font = Font(bold=True, size=16, color="FFFFFF")
    ws["A1"].fill = accent
    ws["A1"].alignment = Alignment(horizontal="center")

    rows = [
        ("Address", short_address(character.address)),
        ("Generated", datetime.now().strftime("%Y-%m-%d %H:%M:%S")),
        ("", ""),
        ("Total Transactions", format_number(character.total_transactions)),
        ("Active Time", character.active_time.display_text),
        ("Chains Used", ", ".join(character.chains_used) or "N/A"),
        ("NFT Transactions", format_number(character.analysis.nft_count)),
        ("DeFi Protocols", ", ".join(character.analysis.defi_protocols) or "N/A"),
        ("Unique Contracts", format_number(character.analysis.unique_contracts)),
        ("", ""),
    ]
    rows.extend(_attribute_rows(character))
    for i, (label, value) in enumerate(rows, 3):
        ws[f"A{i}"] = label
        ws[f"A{i}"].font = bold
        ws[f"B{i}"] = value

    # ── Interactions Sheet ────────────────────────────────────────────
    ws2 = wb.create_sheet("Interactions")
    headers = ["Protocol", "Category", "Count", "Addresses"]
    for col, h in enumerate(headers, 1):
        cell = ws2.cell(row=1, column=col, value=h)
        cell.font = white_bold
        cell.fill = dark

    for i, item in enumerate(character.analysis.contract_interactions, 2):
        ws2.cell(row=i, column=1, value=item.protocol)
        ws2.cell(row=i, column=2, value=item.category)
        ws2.cell(row=i, column=3, value=item.count)
        ws2.cell(row=i, column=4, value=", ".join(item.addresses))

    # Auto-fit column widths
    for sheet in [ws, ws2]:
        for col in sheet.columns:
            max_len = max(len(str(cell.value or "")) for cell in col)
            sheet.column_dimensions[col[0].column_letter].width = min(max_len + 3, 45)

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()
