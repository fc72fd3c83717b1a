import json
from pathlib import Path

from hms_scheduler.errors import NotFound
from hms_scheduler.models import Doctor, Hospital

DOCTOR_SORTS = ("rating", "name", "experience", "price")


class CatalogProvider:
    """Read-only hospital and doctor catalog, loaded once from static fixtures."""

    def __init__(self, hospitals: list[Hospital], doctors: list[Doctor]) -> None:
        self._hospitals = {h.id: h for h in hospitals}
        self._doctors = {d.id: d for d in doctors}

    @classmethod
    def from_directory(cls, data_dir: str | Path) -> "CatalogProvider":
        """Load `hospitals.json` and `doctors.json` from `data_dir`."""
        data_dir = Path(data_dir)
        hospitals = json.loads((data_dir / "hospitals.json").read_text(encoding="utf-8"))
        doctors = json.loads((data_dir / "doctors.json").read_text(encoding="utf-8"))
        return cls(
            [Hospital.model_validate(h) for h in hospitals["hospitals"]],
            [Doctor.model_validate(d) for d in doctors["doctors"]],
        )

    def get_hospitals(self) -> list[Hospital]:
        return list(self._hospitals.values())

    def get_doctors(self) -> list[Doctor]:
        return list(self._doctors.values())

    def get_hospital(self, hospital_id: int) -> Hospital:
        try:
            return self._hospitals[hospital_id]
        except KeyError:
            raise NotFound(f"Hospital {hospital_id} not found") from None

    def get_doctor(self, doctor_id: int) -> Doctor:
        try:
            return self._doctors[doctor_id]
        except KeyError:
            raise NotFound(f"Doctor {doctor_id} not found") from None

    def get_specialties(self, hospital_id: int) -> list[str]:
        """Return specialties offered at the chosen hospital."""
        return list(self.get_hospital(hospital_id).specialties)

    def doctors_at(self, hospital_id: int) -> list[Doctor]:
        """Return doctors working at the hospital (matched by hospital name)."""
        name = self.get_hospital(hospital_id).name
        return [d for d in self._doctors.values() if d.hospital == name]

    def search_doctors(
        self,
        specialty: str | None = None,
        search: str | None = None,
        min_experience: int = 0,
        sort: str = "rating",
    ) -> list[Doctor]:
        """Filter by specialty/subspecialty, free text and experience, then sort."""
        wanted = (specialty or "").strip().lower()
        text = (search or "").strip().lower()

        def matches(d: Doctor) -> bool:
            if wanted and wanted != "all":
                if wanted not in d.specialty.lower() and not any(wanted in s.lower() for s in d.subspecialty):
                    return False
            if text:
                haystack = [d.name, d.specialty, d.hospital, *d.education]
                if not any(text in h.lower() for h in haystack):
                    return False
            return d.experience >= min_experience

        found = [d for d in self._doctors.values() if matches(d)]
        if sort == "name":
            found.sort(key=lambda d: d.name.lower())
        elif sort == "experience":
            found.sort(key=lambda d: d.experience, reverse=True)
        elif sort == "price":
            found.sort(key=lambda d: d.consultation_fee)
        else:
            found.sort(key=lambda d: d.rating, reverse=True)
        return found

    def search_hospitals(self, type: str | None = None, search: str | None = None) -> list[Hospital]:
        """Filter by hospital type and free text over name, location and specialties."""
        text = (search or "").strip().lower()
        found = []
        for h in self._hospitals.values():
            if type and type != "all" and h.type.value != type:
                continue
            if text and not any(text in s.lower() for s in [h.name, h.location, *h.specialties]):
                continue
            found.append(h)
        return found
