"""
Record schemas for the four backend tables.

These models define the payload written by each upload kind. Field
defaults mirror what the normalizer substitutes for blank CSV cells, so a
record built from a sparse row still satisfies the table's NOT NULL
conflict columns.
"""

from typing import Optional
from pydantic import BaseModel, Field

# Postgres unique indexes treat NULLs as distinct; missing timestamps get this value
SENTINEL_TIMESTAMP = '1970-01-01T00:00:00.000Z'


class OverviewRecord(BaseModel):
    """
    One ticket-to-material association.

    Table: mese_overview
    Conflict key: (serial_number, material_name, drawing_number)
    """

    serial_number: str = Field(description="三包流水号")
    report_year: int = Field(description="2000 + first two-digit run in the serial number")
    department: str = Field(default='', description="Branch / department")
    customer_name: Optional[str] = Field(default=None, description="Customer or project name")
    installation_stage: Optional[str] = Field(default=None, description="Installation stage")
    material_name: str = Field(default='', description="Material name")
    drawing_number: str = Field(default='', description="Drawing number")
    warranty_count: int = Field(default=0, ge=0, description="Warranty quantity")
    warranty_type: str = Field(default='', description="Warranty type")
    fault_description: str = Field(default='', description="Fault description")


class CycleStatsRecord(BaseModel):
    """
    One ticket's cycle-time breakdown for a statistics month.

    Table: mese_cycle_stats
    Conflict key: (serial_number, stat_month)

    total_cycle_time is supplied by the export and is not recomputed from
    the five components.
    """

    serial_number: str
    stat_month: str = Field(description="YYYY-MM")
    hq_dispatch_time: float = Field(default=0.0, description="总部制造发运时间 (days)")
    hq_audit_time: float = Field(default=0.0, description="总部审核处置时间 (days)")
    branch_submit_time: float = Field(default=0.0, description="分公司审核提交时间 (days)")
    supp_invest_time: float = Field(default=0.0, description="补充调查时间 (days)")
    branch_invest_time: float = Field(default=0.0, description="分公司现场调查时间 (days)")
    ship_time: float = Field(default=0.0, description="Manufacturing/shipping cycle, same source as hq_dispatch_time")
    total_cycle_time: float = Field(default=0.0, description="全周期统计时间 (days)")
    department: str = ''
    customer_name: str = ''
    material_type: str = Field(default='', description="基板 / 非基板 marker")


class LedgerRecord(BaseModel):
    """
    One ticket's annual financial and closure record.

    Table: mese_ledger
    Conflict key: (serial_number, report_year)
    """

    serial_number: str
    report_year: int
    department: str = ''
    customer_name: str = ''
    warranty_type: str = ''
    material_name: str = ''
    quantity: float = 0
    amount: float = 0.0
    resolution: str = ''
    status: str = Field(default='', description="Closure state; closed when it contains '结'")
    category: str = ''
    cause: str = ''
    apply_date: Optional[str] = Field(default=None, description="ISO timestamp")


class PersonNodeRecord(BaseModel):
    """
    One process-step log entry.

    Table: mese_person_node
    Conflict key: all five fields
    """

    serial_number: str
    start_time: str = SENTINEL_TIMESTAMP
    end_time: str = SENTINEL_TIMESTAMP
    node: str = ''
    person_name: str = ''
