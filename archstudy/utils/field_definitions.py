"""
Subject → category → field classification used to tag questions.

Category ids look like ``"1-4"``, field ids like ``"1-4-2"``; a question
tagged with a field also belongs to that field's category.
"""
from typing import Dict, List, Optional

SUBJECT_NAMES = {
    1: "学科Ⅰ（計画）",
    2: "学科Ⅱ（環境・設備）",
    3: "学科Ⅲ（法規）",
    4: "学科Ⅳ（構造）",
    5: "学科Ⅴ（施工）",
}

SUBJECT_SHORT_NAMES = {
    1: "計画",
    2: "環境・設備",
    3: "法規",
    4: "構造",
    5: "施工",
}

def _category(category_id: str, name: str, fields=()):
    return {
        "id": category_id,
        "name": name,
        "fields": [{"id": fid, "name": fname} for fid, fname in fields],
    }

FIELD_DEFINITIONS: Dict[int, dict] = {
    1: {
        "name": "計画",
        "categories": [
            _category("1-1", "建築計画", [
                ("1-1-1", "基本計画"),
                ("1-1-2", "住宅建築計画"),
                ("1-1-3", "公共・商業建築計画"),
                ("1-1-4", "細部計画"),
            ]),
            _category("1-3", "建築積算"),
            _category("1-4", "建築生産（マネジメント）", [
                ("1-4-1", "建築士の職責・業務"),
                ("1-4-2", "設計・工事監理等"),
                ("1-4-3", "マネジメント"),
            ]),
            _category("1-5", "都市計画"),
            _category("1-6", "建築史", [
                ("1-6-1", "古典建築"),
                ("1-6-2", "近現代建築"),
            ]),
        ],
    },
    2: {
        "name": "環境・設備",
        "categories": [
            _category("2-1", "環境工学", [
                ("2-1-1", "環境工学全般"),
                ("2-1-2", "換気"),
                ("2-1-3", "伝熱・結露"),
                ("2-1-4", "日照・日射"),
                ("2-1-5", "採光・照明"),
                ("2-1-6", "色彩"),
                ("2-1-7", "音響"),
            ]),
            _category("2-2", "建築設備", [
                ("2-2-1", "建築設備全般"),
                ("2-2-2", "空気調和設備"),
                ("2-2-3", "給排水衛生設備"),
                ("2-2-4", "電気・昇降設備等"),
                ("2-2-5", "防災計画・防災設備"),
            ]),
        ],
    },
    3: {
        "name": "法規",
        "categories": [
            _category("3-1", "制度規定【第一章】"),
            _category("3-2", "単体規定【第二章】", [
                ("3-2-1", "一般構造"),
                ("3-2-2", "構造関係規程（法第20条）"),
                ("3-2-3", "防火避難規定（法第35条）"),
            ]),
            _category("3-3", "集団規定【第三章】", [
                ("3-3-1", "道路・壁面線（法第42～47条）"),
                ("3-3-2", "建築物の用途（法第48～51条）"),
                ("3-3-3", "建蔽率・容積率"),
                ("3-3-4", "高さ制限"),
                ("3-3-5", "集団規定その他"),
            ]),
            _category("3-4", "建築基準法その他・融合"),
            _category("3-5", "関係法令", [
                ("3-5-1", "建築士法"),
                ("3-5-2", "都市計画法"),
                ("3-5-3", "消防法"),
                ("3-5-4", "バリアフリー法"),
                ("3-5-5", "省エネ法"),
                ("3-5-6", "その他法令・融合"),
            ]),
        ],
    },
    4: {
        "name": "構造",
        "categories": [
            _category("4-1", "構造力学"),
            _category("4-2", "構造設計"),
            _category("4-3", "一般構造", [
                ("4-3-1", "木質構造"),
                ("4-3-2", "鉄骨構造"),
                ("4-3-3", "鉄筋コンクリート構造"),
                ("4-3-4", "合成構造・混構造"),
                ("4-3-5", "免震・制振構造"),
                ("4-3-6", "地盤・基礎構造"),
                ("4-3-7", "各種構造融合問題"),
            ]),
            _category("4-4", "材料", [
                ("4-4-1", "木・木質系"),
                ("4-4-2", "コンクリート"),
                ("4-4-3", "金属"),
            ]),
        ],
    },
    5: {
        "name": "施工",
        "categories": [
            _category("5-1", "施工管理"),
            _category("5-2", "地質調査・測量"),
            _category("5-3", "仮設工事"),
            _category("5-4", "土工事"),
            _category("5-5", "地業工事"),
            _category("5-6", "鉄筋工事"),
            _category("5-7", "型枠工事"),
            _category("5-8", "コンクリート工事"),
            _category("5-9", "鉄骨工事"),
            _category("5-10", "プレキャス鉄筋コンクリート工事"),
            _category("5-11", "左官工事"),
            _category("5-12", "防水工事"),
            _category("5-13", "木工事"),
            _category("5-14", "ガラス・金属工事"),
            _category("5-15", "内外装工事"),
            _category("5-16", "改修工事"),
            _category("5-17", "設備工事"),
            _category("5-18", "複合問題"),
        ],
    },
}

def get_subject_name(subject: int, short: bool = False) -> str:
    names = SUBJECT_SHORT_NAMES if short else SUBJECT_NAMES
    return names.get(subject, "不明")

def get_field_name(field_id: Optional[str]) -> str:
    """Name of a category or field id"""
    if not field_id:
        return "未設定"
    for subject in FIELD_DEFINITIONS.values():
        for category in subject["categories"]:
            if category["id"] == field_id:
                return category["name"]
            for field in category["fields"]:
                if field["id"] == field_id:
                    return field["name"]
    return "不明"

def get_category_id(field_id: Optional[str]) -> Optional[str]:
    """'1-1-1' -> '1-1'; a category id is returned unchanged"""
    if not field_id:
        return None
    parts = field_id.split("-")
    if len(parts) == 3:
        return f"{parts[0]}-{parts[1]}"
    if len(parts) == 2:
        return field_id
    return None

def get_category_name(field_id: Optional[str]) -> str:
    category_id = get_category_id(field_id)
    if not category_id:
        return "未設定"
    for subject in FIELD_DEFINITIONS.values():
        for category in subject["categories"]:
            if category["id"] == category_id:
                return category["name"]
    return "不明"

def matches_field(question_field: Optional[str], target_field_id: Optional[str]) -> bool:
    """True when the question's field is the target or lies under the target category"""
    if not question_field or not target_field_id:
        return False
    if question_field == target_field_id:
        return True
    return question_field.startswith(target_field_id + "-")

def all_fields_list(subject: int) -> List[dict]:
    """Flat list of every category and field of a subject, for statistics"""
    subject_def = FIELD_DEFINITIONS.get(subject)
    if not subject_def:
        return []

    result = []
    for category in subject_def["categories"]:
        result.append({
            "id": category["id"],
            "name": category["name"],
            "type": "category",
            "subject": subject,
        })
        for field in category["fields"]:
            result.append({
                "id": field["id"],
                "name": field["name"],
                "type": "field",
                "category_id": category["id"],
                "category_name": category["name"],
                "subject": subject,
            })
    return result
