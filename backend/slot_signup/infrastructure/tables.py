from dataclasses import dataclass


@dataclass(frozen=True)
class TableLayout:
    name: str
    columns: tuple[str, ...]

    def index(self, column: str) -> int:
        return self.columns.index(column)

    @property
    def last_column(self) -> str:
        return column_letter(len(self.columns) - 1)


def column_letter(index: int) -> str:
    letters = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


SLOTS = TableLayout("Slots", ("id", "date", "label", "capacity", "taken"))

SIGNUPS = TableLayout(
    "Signups",
    (
        "id",
        "timestamp",
        "date",
        "slot_label",
        "name",
        "email",
        "phone",
        "category",
        "notes",
        "slot_id",
        "status",
        "batch_id",
    ),
)

LAYOUTS = {SLOTS.name: SLOTS, SIGNUPS.name: SIGNUPS}
