"""
Header alias tables for each upload kind.

Canonical field -> ordered list of accepted header spellings. The first
alias with a non-empty cell wins, so more specific spellings come first.
Exports from different systems and years use English column names, the
MESE headers, or the TR ledger headers; all of them are listed here rather
than branched on in code.
"""

from typing import Dict, List

SERIAL_NUMBER = ['serial_number', '三包流水号', '流水号']

OVERVIEW_ALIASES: Dict[str, List[str]] = {
    'serial_number': SERIAL_NUMBER,
    'department': ['department', '分公司', '部门'],
    'customer_name': ['customer_name', '客户名称', '项目名称', '项目'],
    'installation_stage': ['installation_stage', '安装阶段'],
    'material_name': ['material_name', '物料名称', '物料描述'],
    'drawing_number': ['drawing_number', '图号'],
    'warranty_count': ['warranty_count', '数量', '三包数量'],
    'warranty_type': ['warranty_type', '三包类型'],
    'fault_description': ['fault_description', '故障描述', '问题描述', '原因'],
}

PERSON_NODE_ALIASES: Dict[str, List[str]] = {
    'serial_number': ['三包流水号', 'serial_number', '流水号'],
    'start_time': ['处理开始时间', 'start_time', '开始时间'],
    'end_time': ['处理结束时间', 'end_time', '结束时间'],
    'node': ['流程节点', 'node', '节点'],
    'person_name': ['处理人姓名', 'person_name', '处理人', '姓名'],
}

CYCLE_STATS_ALIASES: Dict[str, List[str]] = {
    'serial_number': ['三包流水号', 'serial_number'],
    'hq_dispatch_time': ['总部制造发运时间', 'hq_dispatch_time', '制造发运周期'],
    'hq_audit_time': ['总部审核处置时间', 'hq_audit_time'],
    'branch_submit_time': ['分公司审核提交时间', 'branch_submit_time'],
    'supp_invest_time': ['补充调查时间', 'supp_invest_time'],
    'branch_invest_time': ['分公司现场调查时间', 'branch_invest_time'],
    'total_cycle_time': ['全周期统计时间', 'total_cycle_time'],
    'department': ['提出部门', 'department'],
    'customer_name': ['客户名称', 'customer_name'],
    'material_type': ['基板类型', 'material_type'],
}

LEDGER_ALIASES: Dict[str, List[str]] = {
    'serial_number': [
        '三包流水号', 'serial_number', '流水号',
        'TR编号', '物流三包号', '快递三包号', '三包单取号',
    ],
    'department': ['提出部门', '分公司', '部门', '责任科室'],
    'customer_name': ['客户名称', '项目名称', '客户', '项目名'],
    'warranty_type': ['三包类型', '类型', 'TR部品分类', '品目分类', '部品分类'],
    'material_name': ['物料名称', '物料描述', '物料', '部品名称', '品目'],
    'quantity': ['数量', '三包数量', '统计-数量'],
    'amount': ['金额', '费用金额', '赔付金额', '金额(元)', '预估三包费用'],
    'resolution': ['处理方式', '处置方式', '结案方式', '核查结案', '核查意见'],
    'status': ['结案状态', '状态', 'TR状态区分'],
    'category': ['问题类别', '问题类型', '不良分类（MASTER）', '一级分类'],
    'cause': ['原因', '原因分类', '原因类型', '五级定责分类'],
    'apply_date': ['申请日期', '发生日期', '上报日期', 'TR提出日期', '记录更新日期'],
}
