"""
Academic structure service

Programs contain levels, levels contain semesters. Every operation opens its own
database session so the service can be called from worker threads concurrently.
"""

import logging
import re
import unicodedata
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Type

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from academic_agent.models.academic_models import Level, Program, Semester


logger = logging.getLogger(__name__)


ENTITY_MODELS: Dict[str, Type[Any]] = {
    "program": Program,
    "level": Level,
    "semester": Semester,
}

RETRIEVABLE_FIELDS = ("id", "name", "slug", "code", "description", "status")


class AcademicError(ValueError):
    """Base error for academic structure operations"""


class NotFoundError(AcademicError):
    """The requested record does not exist"""


class ConflictError(AcademicError):
    """A uniqueness rule would be broken"""


def slugify(value: str) -> str:
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^\w\s-]", "", value.lower()).strip()
    return re.sub(r"[-\s_]+", "-", value)


def clean_description(description: Optional[str]) -> Optional[str]:
    """Collapse newlines and surrounding whitespace into single spaces"""
    if description is None:
        return None
    return re.sub(r"\s*\n\s*", " ", description).strip()


def _to_dict(record: Any) -> Dict[str, Any]:
    data = {
        "id": record.id,
        "name": record.name,
        "slug": record.slug,
        "code": record.code,
        "description": record.description,
        "status": record.status,
        "created_at": record.created_at.isoformat() if record.created_at else None,
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
    }
    if isinstance(record, Level):
        data["program_id"] = record.program_id
    elif isinstance(record, Semester):
        data["level_id"] = record.level_id
    return data


class AcademicService:
    """CRUD and lookups over programs, levels and semesters"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise ConflictError(f"Uniqueness constraint violated: {e.orig}") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # ------------------------------------------------------------------
    # programs
    # ------------------------------------------------------------------

    def create_program(self, name: str, code: str, description: Optional[str] = None,
                       status: Optional[str] = None) -> Dict[str, Any]:
        slug = slugify(name)
        with self._session() as db:
            if db.query(Program).filter(Program.slug == slug).first():
                raise ConflictError(f"A program named '{name}' already exists")
            self._check_code_free(db, Program, code)

            program = Program(
                name=name.strip(),
                slug=slug,
                code=code,
                description=clean_description(description),
                status=status or "active",
            )
            db.add(program)
            db.flush()
            logger.info(f"Created program {program.id} ({program.code})")
            return _to_dict(program)

    def get_programs(self) -> List[Dict[str, Any]]:
        with self._session() as db:
            return [_to_dict(p) for p in db.query(Program).order_by(Program.created_at).all()]

    def update_program(self, program_id: str, name: Optional[str] = None,
                       description: Optional[str] = None, code: Optional[str] = None,
                       status: Optional[str] = None) -> Dict[str, Any]:
        with self._session() as db:
            program = self._get(db, Program, program_id)

            if name is not None:
                slug = slugify(name)
                clash = db.query(Program).filter(Program.slug == slug, Program.id != program_id).first()
                if clash:
                    raise ConflictError(f"A program named '{name}' already exists")
                program.name = name.strip()
                program.slug = slug
            if code is not None and code != program.code:
                self._check_code_free(db, Program, code)
                program.code = code
            if description is not None:
                program.description = clean_description(description)
            if status is not None:
                program.status = status

            db.flush()
            return _to_dict(program)

    def delete_program(self, program_id: str) -> Dict[str, Any]:
        with self._session() as db:
            program = self._get(db, Program, program_id)
            db.delete(program)
            logger.info(f"Deleted program {program_id}")
            return {"id": program_id, "deleted": True}

    def find_program_id_by_name(self, program_name: str) -> str:
        with self._session() as db:
            program = db.query(Program).filter(Program.slug == slugify(program_name)).first()
            if program is None:
                raise NotFoundError(f"Program not found: {program_name}")
            return program.id

    # ------------------------------------------------------------------
    # levels
    # ------------------------------------------------------------------

    def create_level(self, name: str, code: str, program_id: str,
                     description: Optional[str] = None) -> Dict[str, Any]:
        slug = slugify(name)
        with self._session() as db:
            self._get(db, Program, program_id)
            clash = db.query(Level).filter(Level.program_id == program_id, Level.slug == slug).first()
            if clash:
                raise ConflictError(f"Level '{name}' already exists in this program")
            self._check_code_free(db, Level, code)

            level = Level(
                name=name.strip(),
                slug=slug,
                code=code,
                program_id=program_id,
                description=clean_description(description),
            )
            db.add(level)
            db.flush()
            logger.info(f"Created level {level.id} ({level.code}) in program {program_id}")
            return _to_dict(level)

    def get_levels(self, program_id: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._session() as db:
            query = db.query(Level)
            if program_id:
                query = query.filter(Level.program_id == program_id)
            return [_to_dict(level) for level in query.order_by(Level.created_at).all()]

    def update_level(self, level_id: str, name: Optional[str] = None,
                     description: Optional[str] = None, code: Optional[str] = None) -> Dict[str, Any]:
        with self._session() as db:
            level = self._get(db, Level, level_id)

            if name is not None:
                slug = slugify(name)
                clash = db.query(Level).filter(
                    Level.program_id == level.program_id, Level.slug == slug, Level.id != level_id
                ).first()
                if clash:
                    raise ConflictError(f"Level '{name}' already exists in this program")
                level.name = name.strip()
                level.slug = slug
            if code is not None and code != level.code:
                self._check_code_free(db, Level, code)
                level.code = code
            if description is not None:
                level.description = clean_description(description)

            db.flush()
            return _to_dict(level)

    def delete_level(self, level_id: str) -> Dict[str, Any]:
        with self._session() as db:
            db.delete(self._get(db, Level, level_id))
            logger.info(f"Deleted level {level_id}")
            return {"id": level_id, "deleted": True}

    def find_level_id_by_name(self, level_name: str, program_id: Optional[str] = None) -> List[str]:
        """IDs of levels whose slug contains the slugified name"""
        with self._session() as db:
            query = db.query(Level).filter(Level.slug.contains(slugify(level_name)))
            if program_id:
                query = query.filter(Level.program_id == program_id)
            ids = [level.id for level in query.all()]
            if not ids:
                raise NotFoundError(f"Level not found: {level_name}")
            return ids

    # ------------------------------------------------------------------
    # semesters
    # ------------------------------------------------------------------

    def create_semester(self, name: str, code: str, level_id: str,
                        description: Optional[str] = None) -> Dict[str, Any]:
        slug = slugify(name)
        with self._session() as db:
            self._get(db, Level, level_id)
            clash = db.query(Semester).filter(Semester.level_id == level_id, Semester.slug == slug).first()
            if clash:
                raise ConflictError(f"Semester '{name}' already exists in this level")
            self._check_code_free(db, Semester, code)

            semester = Semester(
                name=name.strip(),
                slug=slug,
                code=code,
                level_id=level_id,
                description=clean_description(description),
            )
            db.add(semester)
            db.flush()
            logger.info(f"Created semester {semester.id} ({semester.code}) in level {level_id}")
            return _to_dict(semester)

    def get_semesters(self, level_id: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._session() as db:
            query = db.query(Semester)
            if level_id:
                query = query.filter(Semester.level_id == level_id)
            return [_to_dict(s) for s in query.order_by(Semester.created_at).all()]

    def update_semester(self, semester_id: str, name: Optional[str] = None,
                        description: Optional[str] = None, code: Optional[str] = None) -> Dict[str, Any]:
        with self._session() as db:
            semester = self._get(db, Semester, semester_id)

            if name is not None:
                slug = slugify(name)
                clash = db.query(Semester).filter(
                    Semester.level_id == semester.level_id, Semester.slug == slug, Semester.id != semester_id
                ).first()
                if clash:
                    raise ConflictError(f"Semester '{name}' already exists in this level")
                semester.name = name.strip()
                semester.slug = slug
            if code is not None and code != semester.code:
                self._check_code_free(db, Semester, code)
                semester.code = code
            if description is not None:
                semester.description = clean_description(description)

            db.flush()
            return _to_dict(semester)

    def delete_semester(self, semester_id: str) -> Dict[str, Any]:
        with self._session() as db:
            db.delete(self._get(db, Semester, semester_id))
            logger.info(f"Deleted semester {semester_id}")
            return {"id": semester_id, "deleted": True}

    def find_semester_id_by_name(self, semester_name: str, level_id: Optional[str] = None) -> List[str]:
        with self._session() as db:
            query = db.query(Semester).filter(Semester.slug.contains(slugify(semester_name)))
            if level_id:
                query = query.filter(Semester.level_id == level_id)
            ids = [semester.id for semester in query.all()]
            if not ids:
                raise NotFoundError(f"Semester not found: {semester_name}")
            return ids

    # ------------------------------------------------------------------
    # generic lookups
    # ------------------------------------------------------------------

    def find_id_by_code(self, entity: str, code: str) -> str:
        model = self._model_for(entity)
        with self._session() as db:
            record = db.query(model).filter(model.code == code).first()
            if record is None:
                raise NotFoundError(f"No {entity} with code {code}")
            return record.id

    def retrieve_field(self, entity_type: str, field_name: str, entity_id: Optional[str] = None) -> Any:
        """
        Read one field of an entity

        Args:
            entity_type: program, level or semester
            field_name: one of RETRIEVABLE_FIELDS
            entity_id: record id; when omitted the field is returned for every record

        Returns:
            The field value, or a list of values when no id is given
        """
        model = self._model_for(entity_type)
        if field_name not in RETRIEVABLE_FIELDS:
            raise AcademicError(
                f"Invalid field '{field_name}', expected one of: {', '.join(RETRIEVABLE_FIELDS)}"
            )

        with self._session() as db:
            if entity_id is None:
                return [getattr(record, field_name) for record in db.query(model).all()]
            return getattr(self._get(db, model, entity_id), field_name)

    # ------------------------------------------------------------------

    def _model_for(self, entity: str) -> Type[Any]:
        model = ENTITY_MODELS.get(entity.lower().strip())
        if model is None:
            raise AcademicError(f"Unknown entity '{entity}', expected program, level or semester")
        return model

    def _get(self, db: Session, model: Type[Any], record_id: str) -> Any:
        record = db.get(model, record_id)
        if record is None:
            raise NotFoundError(f"{model.__name__} not found: {record_id}")
        return record

    def _check_code_free(self, db: Session, model: Type[Any], code: str) -> None:
        if db.query(model).filter(model.code == code).first():
            raise ConflictError(f"{model.__name__} code already in use: {code}")
