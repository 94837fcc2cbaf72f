"""Reads rows and cells of table sections in record data.

Table sections are optional and often absent on sparse records, so every
lookup here returns None for missing data instead of raising.
"""

from typing import List, Optional

from apptivo.core.services.attribute_resolver import AttributeResolver
from apptivo.domain.models.common import LabelPath
from apptivo.domain.models.config import ConfigDocument
from apptivo.domain.models.record import ObjectData, TableSectionRow


class TableSectionResolver:
    """Row, column and cell lookups for table sections."""

    def __init__(self, attribute_resolver: Optional[AttributeResolver] = None):
        self.attribute_resolver = attribute_resolver or AttributeResolver()

    @staticmethod
    def get_section_rows(section_attribute_id: str, object_data: ObjectData) -> Optional[List[TableSectionRow]]:
        """Rows of one table section, or None when the record has no data for it."""
        rows = object_data.table_sections.get(section_attribute_id)
        if rows is None:
            return None
        return list(rows)

    @staticmethod
    def get_column_index(attribute_id: str, row: TableSectionRow) -> Optional[int]:
        for index, cell in enumerate(row.cells):
            if cell.attribute_id == attribute_id:
                return index
        return None

    def get_section_rows_by_label(
        self, section_label: str, object_data: ObjectData, config: ConfigDocument
    ) -> Optional[List[TableSectionRow]]:
        """Rows of the table section with the given label.

        Raises:
            AttributeNotFoundError: No table section carries that label.
        """
        section_id = self.attribute_resolver.resolve_section_attribute_id(section_label, config)
        return self.get_section_rows(section_id, object_data)

    def get_cell_value_by_label(self, label: LabelPath, row: TableSectionRow, config: ConfigDocument) -> Optional[str]:
        """Value of the cell under a column label, or None if the label or cell is missing."""
        column = self.attribute_resolver.resolve_column(label, config)
        if column is None:
            return None
        index = self.get_column_index(column.attribute_id, row)
        if index is None:
            return None
        value = row.cells[index].value
        if value is None:
            return None
        if isinstance(value, (list, tuple)):
            return ", ".join(str(item) for item in value)
        return str(value)
