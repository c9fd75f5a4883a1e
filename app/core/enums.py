from enum import Enum


class Sex(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


class ExportFormat(str, Enum):
    CSV = "csv"
    XLSX = "xlsx"
