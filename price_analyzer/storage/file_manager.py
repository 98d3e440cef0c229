# price_analyzer/storage/file_manager.py

"""Product table import/export and operation-log export."""

import csv
import logging
from datetime import datetime
from pathlib import Path

from price_analyzer.config.settings import Settings
from price_analyzer.models.product import Product
from price_analyzer.services.operation_log import OperationLog

logger = logging.getLogger("price_analyzer.storage")

CSV_COLUMNS: list[str] = [
    "name",
    "description",
    "quantity",
    "purchasePrice",
    "salePrice",
    "competitorNewPrice",
    "competitorUsedPrice",
    "lastUpdated",
]


class FileManager:
    """Reads and writes product tables and log exports."""

    def __init__(self, exports_dir: Path | None = None) -> None:
        self.exports_dir: Path = exports_dir or Settings.EXPORTS_DIR
        logger.debug(
            "FileManager initialised — exports_dir=%s", self.exports_dir,
        )

    def _timestamped(self, prefix: str, suffix: str) -> Path:
        self.exports_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return self.exports_dir / f"{prefix}_{timestamp}{suffix}"

    def load_products_csv(self, path: Path) -> tuple[list[Product], int]:
        """Read products from a CSV with the export columns.

        Delimiter is sniffed (comma, semicolon or tab).  Rows without
        a name or with invalid numbers are skipped.

        Returns the products and the number of skipped rows.
        """
        products: list[Product] = []
        skipped = 0
        with open(path, newline="", encoding="utf-8-sig") as f:
            sample = f.read(4096)
            f.seek(0)
            try:
                dialect = csv.Sniffer().sniff(sample, delimiters=",;\t")
            except csv.Error:
                dialect = csv.excel  # type: ignore[assignment]
            reader = csv.DictReader(f, dialect=dialect)
            for line_no, row in enumerate(reader, start=2):
                if not (row.get("name") or "").strip():
                    skipped += 1
                    continue
                try:
                    products.append(Product.from_record(row))
                except ValueError as exc:
                    logger.warning(
                        "Skipping %s line %d: %s", path.name, line_no, exc,
                    )
                    skipped += 1

        logger.info(
            "Loaded %d products from %s (%d skipped)",
            len(products),
            path,
            skipped,
        )
        return products, skipped

    def export_products_csv(
        self, products: list[Product], path: Path | None = None,
    ) -> Path:
        """Write products to CSV; defaults to a timestamped export file."""
        filepath = path or self._timestamped("products", ".csv")
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(
                f, fieldnames=CSV_COLUMNS, extrasaction="ignore",
            )
            writer.writeheader()
            for p in products:
                record = p.to_record()
                writer.writerow(
                    {
                        key: "" if record[key] is None else record[key]
                        for key in CSV_COLUMNS
                    }
                )

        logger.info("Exported %d products to %s", len(products), filepath)
        return filepath

    def export_log(
        self, oplog: OperationLog, path: Path | None = None,
    ) -> Path:
        """Write the operation log as JSON."""
        filepath = path or self._timestamped("operation_log", ".json")
        return oplog.export_json(filepath)

    def format_tsv(self, products: list[Product]) -> str:
        """Products as tab-separated text for the clipboard."""
        lines: list[str] = ["\t".join(CSV_COLUMNS)]
        for p in products:
            record = p.to_record()
            lines.append(
                "\t".join(
                    "" if record[key] is None else str(record[key])
                    for key in CSV_COLUMNS
                )
            )
        return "\n".join(lines)
