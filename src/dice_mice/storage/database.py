"""SQLite persistence for Dice Mice.

Provides persistent storage for:
- Class reference data (classes, per-level base attributes, class skills)
- Skills and the points each character has invested in them
- Characters, the authoritative record a level-up commits to

A level-up is written in one transaction guarded on the stored level, so
a stale or repeated commit cannot advance a character twice.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generator
from uuid import uuid4

from dice_mice.core.config import get_settings
from dice_mice.core.exceptions import StorageError
from dice_mice.core.logging import get_logger
from dice_mice.engine.level_up import ProgressionDataSource
from dice_mice.models.character import (
    AttributeSet,
    CharacterClass,
    CharacterSnapshot,
    ClassBaseAttributes,
    SkillInvestment,
)
from dice_mice.models.enums import Attribute

logger = get_logger(__name__)


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class CharacterRecord:
    """A row of the characters table.

    Attributes:
        id: Character identifier.
        owner: Owning user.
        name: Character name.
        class_id: Class identifier, if any.
        current_level: Stored level.
        experience: Stored experience.
        scores: Attribute scores keyed by three-letter name.
        current_hp: Current hit points.
        max_hp: Maximum hit points.
    """

    id: str
    owner: str
    name: str
    class_id: str | None
    current_level: int
    experience: int
    scores: dict[Attribute, int]
    current_hp: int
    max_hp: int

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> CharacterRecord:
        """Create from database row."""
        return cls(
            id=row[0],
            owner=row[1],
            name=row[2],
            class_id=row[3],
            current_level=row[4],
            experience=row[5],
            scores=dict(zip(Attribute, row[6:12])),
            current_hp=row[12],
            max_hp=row[13],
        )

    def to_snapshot(self, character_class: CharacterClass | None) -> CharacterSnapshot:
        return CharacterSnapshot(
            id=self.id,
            owner=self.owner,
            name=self.name,
            level=self.current_level,
            experience=self.experience,
            attributes=AttributeSet.from_abbreviations(self.scores),
            current_hp=self.current_hp,
            max_hp=self.max_hp,
            character_class=character_class,
        )


_CHARACTER_COLUMNS = """
    id, owner, name, class_id, current_level, experience,
    current_str, current_con, current_dex, current_int, current_wis, current_cha,
    current_hp, max_hp
"""

_CLASS_BASE_COLUMNS = """
    class_id, level, attack, spell_attack, ac, fortitude, reflex, will,
    damage_bonus, leadership, skill_ranks, slayer, rage, brutal_advantage
"""


# =============================================================================
# Database Class
# =============================================================================


class Database(ProgressionDataSource):
    """SQLite database holding the authoritative character records."""

    SCHEMA_VERSION = 1

    def __init__(self, db_path: str | Path | None = None) -> None:
        """Initialize database.

        Args:
            db_path: Path to database file. If None, uses the configured path.
        """
        if db_path is None:
            self.db_path = Path(get_settings().storage.database_path)
        else:
            self.db_path = Path(db_path)

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

        logger.info("Database initialized", path=str(self.db_path))

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection that commits on success and rolls back on error."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS classes (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    hit_die TEXT NOT NULL,
                    willpower_progression TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS class_base_attributes (
                    class_id TEXT NOT NULL REFERENCES classes(id) ON DELETE CASCADE,
                    level INTEGER NOT NULL,
                    attack INTEGER NOT NULL,
                    spell_attack INTEGER NOT NULL,
                    ac INTEGER NOT NULL,
                    fortitude INTEGER NOT NULL,
                    reflex INTEGER NOT NULL,
                    will INTEGER NOT NULL,
                    damage_bonus TEXT NOT NULL,
                    leadership INTEGER NOT NULL,
                    skill_ranks INTEGER NOT NULL,
                    slayer TEXT,
                    rage TEXT,
                    brutal_advantage INTEGER,
                    PRIMARY KEY (class_id, level)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS skills (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    associated_stat TEXT
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS class_skills (
                    class_id TEXT NOT NULL REFERENCES classes(id) ON DELETE CASCADE,
                    skill_id TEXT NOT NULL REFERENCES skills(id) ON DELETE CASCADE,
                    PRIMARY KEY (class_id, skill_id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS characters (
                    id TEXT PRIMARY KEY,
                    owner TEXT NOT NULL,
                    name TEXT NOT NULL,
                    class_id TEXT REFERENCES classes(id),
                    current_level INTEGER NOT NULL DEFAULT 1,
                    experience INTEGER NOT NULL DEFAULT 0,
                    current_str INTEGER NOT NULL,
                    current_con INTEGER NOT NULL,
                    current_dex INTEGER NOT NULL,
                    current_int INTEGER NOT NULL,
                    current_wis INTEGER NOT NULL,
                    current_cha INTEGER NOT NULL,
                    current_hp INTEGER NOT NULL,
                    max_hp INTEGER NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS character_skills (
                    character_id TEXT NOT NULL REFERENCES characters(id) ON DELETE CASCADE,
                    skill_id TEXT NOT NULL REFERENCES skills(id) ON DELETE CASCADE,
                    points_invested INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (character_id, skill_id)
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_characters_owner
                ON characters(owner)
            """)

            cursor.execute("""
                INSERT OR REPLACE INTO schema_version (version) VALUES (?)
            """, (self.SCHEMA_VERSION,))

    # =========================================================================
    # Class Operations
    # =========================================================================

    def add_class(self, character_class: CharacterClass) -> CharacterClass:
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO classes (id, name, hit_die, willpower_progression)
                VALUES (?, ?, ?, ?)
            """, (
                character_class.id,
                character_class.name,
                character_class.hit_die,
                str(character_class.willpower_progression),
            ))
        logger.info("Added class", class_id=character_class.id, name=character_class.name)
        return character_class

    def get_class(self, class_id: str) -> CharacterClass | None:
        """Get a class by ID.

        Returns:
            The class if found, None otherwise.
        """
        with self._get_connection() as conn:
            row = conn.execute("""
                SELECT id, name, hit_die, willpower_progression
                FROM classes WHERE id = ?
            """, (class_id,)).fetchone()

        if row is None:
            return None
        return CharacterClass(
            id=row["id"],
            name=row["name"],
            hit_die=row["hit_die"],
            willpower_progression=row["willpower_progression"],
        )

    def add_class_base_attributes(self, attributes: ClassBaseAttributes) -> ClassBaseAttributes:
        """Insert or replace a class's reference row for one level."""
        with self._get_connection() as conn:
            conn.execute(f"""
                INSERT OR REPLACE INTO class_base_attributes ({_CLASS_BASE_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                attributes.class_id,
                attributes.level,
                attributes.attack,
                attributes.spell_attack,
                attributes.armor_class,
                attributes.fortitude,
                attributes.reflex,
                attributes.will,
                attributes.damage_bonus,
                attributes.leadership,
                attributes.skill_ranks,
                attributes.slayer,
                attributes.rage,
                attributes.brutal_advantage,
            ))
        return attributes

    def get_class_base_attributes(self, class_id: str, level: int) -> ClassBaseAttributes | None:
        """Get a class's reference row for a level.

        Args:
            class_id: Class identifier.
            level: Level to look up.

        Returns:
            The row if found, None otherwise.
        """
        with self._get_connection() as conn:
            row = conn.execute(f"""
                SELECT {_CLASS_BASE_COLUMNS}
                FROM class_base_attributes WHERE class_id = ? AND level = ?
            """, (class_id, level)).fetchone()

        if row is None:
            return None
        return ClassBaseAttributes(
            class_id=row["class_id"],
            level=row["level"],
            attack=row["attack"],
            spell_attack=row["spell_attack"],
            armor_class=row["ac"],
            fortitude=row["fortitude"],
            reflex=row["reflex"],
            will=row["will"],
            damage_bonus=row["damage_bonus"],
            leadership=row["leadership"],
            skill_ranks=row["skill_ranks"],
            slayer=row["slayer"],
            rage=row["rage"],
            brutal_advantage=row["brutal_advantage"],
        )

    # =========================================================================
    # Skill Operations
    # =========================================================================

    def add_skill(self, skill_id: str, name: str, attribute: Attribute | None = None) -> None:
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO skills (id, name, associated_stat) VALUES (?, ?, ?)
            """, (skill_id, name, str(attribute) if attribute else None))

    def add_class_skill(self, class_id: str, skill_id: str) -> None:
        with self._get_connection() as conn:
            conn.execute("""
                INSERT OR IGNORE INTO class_skills (class_id, skill_id) VALUES (?, ?)
            """, (class_id, skill_id))

    def get_character_skills(self, character_id: str) -> list[SkillInvestment]:
        """Get every skill with the character's invested points.

        Skills the character has never invested in are listed with zero
        points. ``is_class_skill`` reflects the character's class.

        Args:
            character_id: Character identifier.

        Returns:
            Skills ordered by name.
        """
        with self._get_connection() as conn:
            rows = conn.execute("""
                SELECT s.id, s.name, s.associated_stat,
                       COALESCE(cs.points_invested, 0) AS points_invested,
                       CASE WHEN k.skill_id IS NULL THEN 0 ELSE 1 END AS is_class_skill
                FROM skills s
                LEFT JOIN character_skills cs
                    ON cs.skill_id = s.id AND cs.character_id = ?
                LEFT JOIN characters c ON c.id = ?
                LEFT JOIN class_skills k
                    ON k.skill_id = s.id AND k.class_id = c.class_id
                ORDER BY s.name
            """, (character_id, character_id)).fetchall()

        return [
            SkillInvestment(
                skill_id=row["id"],
                name=row["name"],
                attribute=Attribute(row["associated_stat"]) if row["associated_stat"] else None,
                points_invested=row["points_invested"],
                is_class_skill=bool(row["is_class_skill"]),
            )
            for row in rows
        ]

    def set_character_skill_points(self, character_id: str, skill_id: str, points: int) -> None:
        """Set the points a character has invested in a skill."""
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO character_skills (character_id, skill_id, points_invested)
                VALUES (?, ?, ?)
                ON CONFLICT (character_id, skill_id)
                DO UPDATE SET points_invested = excluded.points_invested
            """, (character_id, skill_id, points))

    # =========================================================================
    # Character Operations
    # =========================================================================

    def create_character(
        self,
        *,
        owner: str,
        name: str,
        attributes: AttributeSet,
        max_hp: int,
        class_id: str | None = None,
        level: int = 1,
        experience: int = 0,
        current_hp: int | None = None,
        character_id: str | None = None,
    ) -> CharacterSnapshot:
        """Create a character.

        Args:
            owner: Owning user.
            name: Character name.
            attributes: Starting attribute scores.
            max_hp: Starting maximum HP.
            class_id: Class identifier.
            level: Starting level.
            experience: Starting experience.
            current_hp: Starting current HP; defaults to ``max_hp``.
            character_id: Explicit identifier; generated if omitted.

        Returns:
            The stored character.
        """
        character_id = character_id or str(uuid4())
        scores = attributes.as_dict()
        with self._get_connection() as conn:
            conn.execute(f"""
                INSERT INTO characters ({_CHARACTER_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                character_id,
                owner,
                name,
                class_id,
                level,
                experience,
                *(scores[attribute] for attribute in Attribute),
                max_hp if current_hp is None else current_hp,
                max_hp,
            ))

        logger.info("Created character", character_id=character_id, owner=owner, name=name)
        character = self.get_character(character_id)
        if character is None:
            raise StorageError("Character vanished after insert", details={"character_id": character_id})
        return character

    def get_character(self, character_id: str) -> CharacterSnapshot | None:
        """Get a character by ID.

        Returns:
            The character if found, None otherwise.
        """
        with self._get_connection() as conn:
            row = conn.execute(f"""
                SELECT {_CHARACTER_COLUMNS} FROM characters WHERE id = ?
            """, (character_id,)).fetchone()

        if row is None:
            return None
        record = CharacterRecord.from_row(tuple(row))
        character_class = self.get_class(record.class_id) if record.class_id else None
        return record.to_snapshot(character_class)

    def set_experience(self, character_id: str, experience: int) -> bool:
        """Store a new experience total without touching the level.

        Returns:
            True if updated, False if the character was not found.
        """
        with self._get_connection() as conn:
            cursor = conn.execute("""
                UPDATE characters SET experience = ? WHERE id = ?
            """, (experience, character_id))
            updated = cursor.rowcount > 0

        if updated:
            logger.info("Experience updated", character_id=character_id, experience=experience)
        return updated

    def apply_level_up(
        self,
        character_id: str,
        *,
        expected_level: int,
        new_level: int,
        new_xp: int,
        attributes: AttributeSet,
        hp_gain: int,
        heal: bool = True,
        skill_points: dict[str, int] | None = None,
    ) -> CharacterSnapshot | None:
        """Apply a validated level-up in a single transaction.

        Args:
            character_id: Character identifier.
            expected_level: Level the character must still be at.
            new_level: Level to store.
            new_xp: Experience to store.
            attributes: Resulting attribute scores.
            hp_gain: Amount added to max HP.
            heal: Set current HP to the new max HP.
            skill_points: Points to add per skill id.

        Returns:
            The updated character, or None if the stored level no longer
            matched ``expected_level`` (nothing is written in that case).
        """
        scores = attributes.as_dict()
        with self._get_connection() as conn:
            cursor = conn.execute("""
                UPDATE characters SET
                    current_level = ?,
                    experience = ?,
                    current_str = ?, current_con = ?, current_dex = ?,
                    current_int = ?, current_wis = ?, current_cha = ?,
                    max_hp = max_hp + ?,
                    current_hp = CASE WHEN ? THEN max_hp + ? ELSE current_hp END
                WHERE id = ? AND current_level = ?
            """, (
                new_level,
                new_xp,
                *(scores[attribute] for attribute in Attribute),
                hp_gain,
                1 if heal else 0,
                hp_gain,
                character_id,
                expected_level,
            ))
            if cursor.rowcount == 0:
                logger.warning(
                    "Level-up write skipped, stored level changed",
                    character_id=character_id,
                    expected_level=expected_level,
                )
                return None

            for skill_id, points in (skill_points or {}).items():
                if points <= 0:
                    continue
                conn.execute("""
                    INSERT INTO character_skills (character_id, skill_id, points_invested)
                    VALUES (?, ?, ?)
                    ON CONFLICT (character_id, skill_id)
                    DO UPDATE SET points_invested = points_invested + excluded.points_invested
                """, (character_id, skill_id, points))

        logger.info(
            "Level-up applied",
            character_id=character_id,
            new_level=new_level,
            hp_gain=hp_gain,
        )
        return self.get_character(character_id)

    def restore_character(
        self,
        snapshot: CharacterSnapshot,
        *,
        expected_level: int,
        skill_points: Mapping[str, int],
    ) -> CharacterSnapshot | None:
        """Roll a character back to an earlier snapshot in one transaction.

        Level, experience, attributes, both HP values and the listed skill
        investments are overwritten with the snapshot's values.

        Args:
            snapshot: The state to restore; ``snapshot.id`` selects the row.
            expected_level: Level the character must still be at.
            skill_points: Absolute points per skill id.

        Returns:
            The restored character, or None if the stored level no longer
            matched ``expected_level`` (nothing is written in that case).
        """
        scores = snapshot.attributes.as_dict()
        with self._get_connection() as conn:
            cursor = conn.execute("""
                UPDATE characters SET
                    current_level = ?,
                    experience = ?,
                    current_str = ?, current_con = ?, current_dex = ?,
                    current_int = ?, current_wis = ?, current_cha = ?,
                    current_hp = ?,
                    max_hp = ?
                WHERE id = ? AND current_level = ?
            """, (
                snapshot.level,
                snapshot.experience,
                *(scores[attribute] for attribute in Attribute),
                snapshot.current_hp,
                snapshot.max_hp,
                snapshot.id,
                expected_level,
            ))
            if cursor.rowcount == 0:
                logger.warning(
                    "Character restore skipped, stored level changed",
                    character_id=snapshot.id,
                    expected_level=expected_level,
                )
                return None

            conn.executemany("""
                INSERT INTO character_skills (character_id, skill_id, points_invested)
                VALUES (?, ?, ?)
                ON CONFLICT (character_id, skill_id)
                DO UPDATE SET points_invested = excluded.points_invested
            """, [(snapshot.id, skill_id, points) for skill_id, points in skill_points.items()])

        logger.info(
            "Character restored",
            character_id=snapshot.id,
            level=snapshot.level,
            experience=snapshot.experience,
        )
        return self.get_character(snapshot.id)


# =============================================================================
# Singleton Instance
# =============================================================================


_database_instance: Database | None = None


def get_database() -> Database:
    """Get the global database instance at the configured path."""
    global _database_instance

    if _database_instance is None:
        _database_instance = Database()

    return _database_instance


def reset_database() -> None:
    """Drop the global instance so the next access reopens it."""
    global _database_instance
    _database_instance = None


__all__ = [
    "CharacterRecord",
    "Database",
    "get_database",
    "reset_database",
]
