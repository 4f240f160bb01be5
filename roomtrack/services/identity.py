# =======================================================================================
# roomtrack/services/identity.py - Tag -> Person -> Student Resolution
# =======================================================================================
from typing import Optional
from sqlalchemy import select
from sqlalchemy.engine import Connection
from sqlalchemy.sql import Select
from ..models.enums import Location
from ..models.schemas import Subject
from ..models.tables import persons, students


def subject_query(person_id: int, for_update: bool = False) -> Select:
    query = select(students.c.id, students.c.location).where(students.c.person_id == person_id)
    if for_update:
        # serializes presence events of the same student
        query = query.with_for_update()
    return query


class IdentityResolver:
    """Maps a scanned tag to the student it belongs to."""

    def person_for_tag(self, conn: Connection, tag_id: str) -> Optional[dict]:
        row = conn.execute(
            select(persons.c.id, persons.c.first_name, persons.c.second_name)
            .where(persons.c.tag_id == tag_id)
        ).mappings().first()
        return dict(row) if row else None

    def subject_for_person(self, conn: Connection, person: dict, for_update: bool = False) -> Optional[Subject]:
        """The person's student record. With for_update the student row stays locked until commit."""
        row = conn.execute(subject_query(person["id"], for_update)).mappings().first()
        if not row:
            return None
        return Subject(
            id=row["id"],
            person_id=person["id"],
            name=f"{person['first_name']} {person['second_name'] or ''}".strip(),
            location=Location(row["location"]),
        )
