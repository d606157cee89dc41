class WeightConverter:
    """Converts lifted weights between the ``kg`` and ``lbs`` units."""

    LBS_PER_KG = 2.20462
    UNITS = ("kg", "lbs")

    @staticmethod
    def kg_to_lb(kg: float) -> float:
        return round(kg * WeightConverter.LBS_PER_KG, 2)

    @staticmethod
    def lb_to_kg(lb: float) -> float:
        return round(lb / WeightConverter.LBS_PER_KG, 2)

    @classmethod
    def convert(cls, weight: float, from_unit: str, to_unit: str) -> float:
        for unit in (from_unit, to_unit):
            if unit not in cls.UNITS:
                raise ValueError(f"Unknown unit: {unit}")
        if from_unit == to_unit:
            return weight
        if to_unit == "lbs":
            return cls.kg_to_lb(weight)
        return cls.lb_to_kg(weight)
