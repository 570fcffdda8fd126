"""Versioned instruction set for structured extraction of survey records."""

from __future__ import annotations

import json
from dataclasses import dataclass

from .record import SurveyRecord

INSTRUCTIONS_VERSION = "tz-survey-record/3"


@dataclass(frozen=True)
class InstructionSet:
    version: str
    system: str
    reminder: str


_FIELD_GUIDE = """\
object_name — ПОЛНОЕ наименование объекта. Копируй ДОСЛОВНО, символ в символ, как в документе,
  включая "по объекту:", "расположенный по адресу:", адреса, кадастровые номера и описания зон.
  Не сокращай, не пересказывай, не исправляй опечатки.
object_location — адрес объекта без фрагмента "кадастровый номер участка ...".
cadastral_number — кадастровый номер участка, если указан.
area_size — площадь участка с единицами измерения, как в документе.
urban_planning_activity — ОДНА строка: вид градостроительной деятельности
  ("Архитектурно-строительное проектирование", "Капитальный ремонт", "Реконструкция",
  "Строительство", "Снос объектов капитального строительства", "Эксплуатация зданий, сооружений" и т.п.).
boundary_description — связный текст: где расположена территория обследования и её площадь.
customer — заказчик: name (полное наименование организации), ogrn (13 цифр после "ОГРН"),
  address (юридический адрес), contact_name, contact_phone, contact_email представителя.
technical — description (краткая техническая характеристика), excavation_depth (глубина земляных работ),
  foundation_type, foundation_depth, foundation_load, settlement_tolerance (допустимые осадки).
object_info — purpose (назначение объекта), transport_infrastructure и dangerous_production (true/false),
  fire_hazard, responsibility_level ("Нормальный" или "Повышенный"), permanent_presence
  ("Предусмотрено", "Отсутствуют" или "Не применимо"), technogenic_impact, dangerous_processes.
survey_types — hydrometeorology (ИГМИ), geology (ИГИ), ecology (ИЭИ): true, если вид изысканий требуется.
goals — include_reconstruction (реконструкция объекта), include_agricultural_land (бывшие земли с/х назначения),
  include_industrial_land (объект производственного назначения).
survey_works — состав инженерно-экологических работ: true, только если работа прямо требуется в документе.
"""

_RULES = """\
ПРАВИЛА ОТВЕТА:
1. Ответ — ровно один JSON-объект, без пояснений, без Markdown и без текста до или после него.
2. Используй только поля из схемы. Никаких дополнительных полей ни на каком уровне.
3. Каждый флаг (transport_infrastructure, dangerous_production, все поля survey_types, goals
   и survey_works) обязателен и равен true или false. Не пропускай флаги и не пиши их строками.
4. Текстовые поля — строки или null, если данных в документе нет. Ничего не выдумывай.
5. object_name копируется дословно из документа."""


def _build_system_prompt() -> str:
    schema = json.dumps(SurveyRecord.model_json_schema(), ensure_ascii=False, indent=2)
    return (
        "Ты — эксперт по инженерным изысканиям в России. Извлеки из технического задания "
        "заказчика данные для задания на инженерные изыскания исполнителя.\n\n"
        f"JSON-СХЕМА ЗАПИСИ:\n{schema}\n\n"
        f"ОПИСАНИЕ ПОЛЕЙ:\n{_FIELD_GUIDE}\n"
        f"{_RULES}"
    )


DEFAULT_INSTRUCTIONS = InstructionSet(
    version=INSTRUCTIONS_VERSION,
    system=_build_system_prompt(),
    reminder=(
        "Предыдущий ответ не прошёл проверку схемы. Верни ТОЛЬКО один JSON-объект строго по схеме: "
        "все флаги присутствуют и равны true или false, лишних полей нет, object_name скопирован "
        "дословно из документа."
    ),
)


def build_user_prompt(document_text: str) -> str:
    return f"Извлеки данные из технического задания:\n\n{document_text}"
