"""Schema of the structured record extracted from a customer technical assignment."""

from __future__ import annotations

from typing import Any, Dict, Iterator, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class CustomerInfo(_Strict):
    name: Optional[StrictStr] = None
    ogrn: Optional[StrictStr] = None
    address: Optional[StrictStr] = None
    contact_name: Optional[StrictStr] = None
    contact_phone: Optional[StrictStr] = None
    contact_email: Optional[StrictStr] = None


class TechnicalCharacteristics(_Strict):
    description: Optional[StrictStr] = None
    excavation_depth: Optional[StrictStr] = None
    foundation_type: Optional[StrictStr] = None
    foundation_depth: Optional[StrictStr] = None
    foundation_load: Optional[StrictStr] = None
    settlement_tolerance: Optional[StrictStr] = None


class ObjectInfo(_Strict):
    purpose: Optional[StrictStr] = None
    transport_infrastructure: StrictBool
    dangerous_production: StrictBool
    fire_hazard: Optional[StrictStr] = None
    responsibility_level: Optional[StrictStr] = None
    permanent_presence: Optional[StrictStr] = None
    technogenic_impact: Optional[StrictStr] = None
    dangerous_processes: Optional[StrictStr] = None


class SurveyTypes(_Strict):
    hydrometeorology: StrictBool
    geology: StrictBool
    ecology: StrictBool


class GoalFlags(_Strict):
    include_reconstruction: StrictBool
    include_agricultural_land: StrictBool
    include_industrial_land: StrictBool


class SurveyWorks(_Strict):
    """Engineering-ecological survey works, one flag per kind of measurement."""

    gamma_terrain: StrictBool = Field(description="Гамма-съёмка территории (МЭД)")
    gamma_building: StrictBool = Field(description="МЭД гамма-излучения в здании")
    gamma_spectrometry_soil: StrictBool = Field(description="Гамма-спектрометрия проб грунта")
    gamma_spectrometry_oss: StrictBool = Field(description="Гамма-спектрометрия проб ОСС")
    radon_terrain: StrictBool = Field(description="Плотность потока радона на территории")
    radon_building: StrictBool = Field(description="ЭРОА радона в здании")
    heavy_metals_soil: StrictBool = Field(description="Тяжёлые металлы в грунте")
    heavy_metals_oss: StrictBool = Field(description="Тяжёлые металлы в ОСС")
    benzpyrene: StrictBool = Field(description="3,4-бенз(а)пирен")
    oil_products: StrictBool = Field(description="Нефтепродукты")
    microbiology_soil: StrictBool = Field(description="Микробиология и паразитология грунта")
    air_analysis: StrictBool = Field(description="Санитарно-химический анализ воздуха")
    water_chemistry: StrictBool = Field(description="Санитарно-химический анализ воды")
    water_microbiology: StrictBool = Field(description="Микробиологический анализ воды")
    gas_geochemistry: StrictBool = Field(description="Газогеохимические исследования")
    noise_level: StrictBool = Field(description="Измерение шума")
    vibration: StrictBool = Field(description="Измерение вибрации")
    emf: StrictBool = Field(description="Измерение электромагнитного поля")


class SurveyRecord(_Strict):
    """Validated description of one field-survey object."""

    object_name: StrictStr = Field(min_length=1, description="Полное наименование объекта, дословно")
    object_location: Optional[StrictStr] = None
    cadastral_number: Optional[StrictStr] = None
    area_size: Optional[StrictStr] = None
    urban_planning_activity: Optional[StrictStr] = None
    boundary_description: Optional[StrictStr] = None

    customer: CustomerInfo
    technical: TechnicalCharacteristics
    object_info: ObjectInfo
    survey_types: SurveyTypes
    goals: GoalFlags
    survey_works: SurveyWorks

    def iter_fields(self) -> Iterator[Tuple[str, Any]]:
        """Yield ``(dotted_name, value)`` for every leaf field."""

        yield from _flatten(self.model_dump())

    def flag_values(self) -> Dict[str, bool]:
        return {name: value for name, value in self.iter_fields() if isinstance(value, bool)}


def _flatten(data: Dict[str, Any], prefix: str = "") -> Iterator[Tuple[str, Any]]:
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            yield from _flatten(value, prefix=f"{name}.")
        else:
            yield name, value


def field_names() -> Tuple[str, ...]:
    """Dotted names of every leaf field, in schema order."""

    names = []

    def _walk(model: type[BaseModel], prefix: str) -> None:
        for key, info in model.model_fields.items():
            annotation = info.annotation
            if isinstance(annotation, type) and issubclass(annotation, BaseModel):
                _walk(annotation, f"{prefix}{key}.")
            else:
                names.append(f"{prefix}{key}")

    _walk(SurveyRecord, "")
    return tuple(names)


__all__ = [
    "CustomerInfo",
    "TechnicalCharacteristics",
    "ObjectInfo",
    "SurveyTypes",
    "GoalFlags",
    "SurveyWorks",
    "SurveyRecord",
    "field_names",
]
