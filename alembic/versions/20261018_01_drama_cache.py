"""
Drama cache schema.

- Create `dramas` and its owned sets: `drama_cast`, `drama_videos`,
  `drama_images`, `drama_seasons` (ON DELETE CASCADE).
- Create the server-side helpers used by the cache store:
  `drama_needs_refresh(p_tmdb_id, p_max_age_days)` and
  `upsert_drama_cache(p_tmdb_id => ..., p_name => ..., ...)`.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic.
revision = "20261018_01_drama_cache"
down_revision = None
branch_labels = None
depends_on = None


# Writable columns of `dramas` with their SQL types, in call order
_UPSERT_PARAMS = (
    ("name", "text"),
    ("original_name", "text"),
    ("overview", "text"),
    ("poster_path", "text"),
    ("backdrop_path", "text"),
    ("release_year", "integer"),
    ("first_air_date", "date"),
    ("last_air_date", "date"),
    ("vote_average", "double precision"),
    ("vote_count", "integer"),
    ("popularity", "double precision"),
    ("status", "text"),
    ("genre_ids", "integer[]"),
    ("origin_country", "varchar(8)[]"),
    ("episode_run_time", "integer"),
    ("original_language", "text"),
    ("homepage", "text"),
    ("tagline", "text"),
    ("number_of_seasons", "integer"),
    ("number_of_episodes", "integer"),
)

_ARRAY_COLUMNS = {"genre_ids", "origin_country"}


def _upsert_function_sql() -> str:
    args = ",\n    ".join(
        f"p_{name} {sql_type}" + ("" if name == "name" else " DEFAULT NULL")
        for name, sql_type in _UPSERT_PARAMS
    )
    columns = ", ".join(name for name, _ in _UPSERT_PARAMS)
    values = ", ".join(
        f"COALESCE(p_{name}, '{{}}')" if name in _ARRAY_COLUMNS else f"p_{name}"
        for name, _ in _UPSERT_PARAMS
    )
    updates = ",\n        ".join(f"{name} = EXCLUDED.{name}" for name, _ in _UPSERT_PARAMS)
    return f"""
CREATE OR REPLACE FUNCTION upsert_drama_cache(
    p_tmdb_id integer,
    {args}
) RETURNS bigint
LANGUAGE sql
AS $$
    INSERT INTO dramas (tmdb_id, {columns}, last_update)
    VALUES (p_tmdb_id, {values}, now())
    ON CONFLICT (tmdb_id) DO UPDATE SET
        {updates},
        last_update = now()
    RETURNING id;
$$;
"""


_NEEDS_REFRESH_SQL = """
CREATE OR REPLACE FUNCTION drama_needs_refresh(p_tmdb_id integer, p_max_age_days integer)
RETURNS boolean
LANGUAGE sql
STABLE
AS $$
    SELECT COALESCE(
        (SELECT last_update < now() - make_interval(days => p_max_age_days)
           FROM dramas
          WHERE tmdb_id = p_tmdb_id),
        true
    );
$$;
"""


def _drama_fk() -> sa.Column:
    return sa.Column(
        "drama_id",
        sa.BigInteger(),
        sa.ForeignKey("dramas.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    # --- dramas ---
    op.create_table(
        "dramas",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("tmdb_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=512), nullable=False),
        sa.Column("original_name", sa.String(length=512), nullable=True),
        sa.Column("overview", sa.Text(), nullable=True),
        sa.Column("tagline", sa.String(length=512), nullable=True),
        sa.Column("homepage", sa.String(length=1024), nullable=True),
        sa.Column("poster_path", sa.String(length=256), nullable=True),
        sa.Column("backdrop_path", sa.String(length=256), nullable=True),
        sa.Column("release_year", sa.Integer(), nullable=True),
        sa.Column("first_air_date", sa.Date(), nullable=True),
        sa.Column("last_air_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=64), nullable=True),
        sa.Column("episode_run_time", sa.Integer(), nullable=True),
        sa.Column("number_of_seasons", sa.Integer(), nullable=True),
        sa.Column("number_of_episodes", sa.Integer(), nullable=True),
        sa.Column("genre_ids", postgresql.ARRAY(sa.Integer()), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("origin_country", postgresql.ARRAY(sa.String(length=8)), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("original_language", sa.String(length=16), nullable=True),
        sa.Column("vote_average", sa.Float(), nullable=True),
        sa.Column("vote_count", sa.Integer(), nullable=True),
        sa.Column("popularity", sa.Float(), nullable=True),
        sa.Column("last_update", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "vote_average IS NULL OR (vote_average >= 0 AND vote_average <= 10)",
            name="ck_dramas_vote_average_range",
        ),
    )
    op.create_index("ix_dramas_tmdb_id", "dramas", ["tmdb_id"], unique=True)
    op.create_index("ix_dramas_popularity", "dramas", ["popularity"], unique=False)
    op.create_index("ix_dramas_last_update", "dramas", ["last_update"], unique=False)

    # --- drama_cast ---
    op.create_table(
        "drama_cast",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        _drama_fk(),
        sa.Column("tmdb_person_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("character", sa.String(length=512), nullable=True),
        sa.Column("profile_path", sa.String(length=256), nullable=True),
        sa.Column("billing_order", sa.Integer(), nullable=True),
        sa.Column("kind", sa.String(length=16), nullable=False, server_default=sa.text("'cast'")),
    )
    op.create_index("ix_drama_cast_drama_id", "drama_cast", ["drama_id"], unique=False)
    op.create_index("ix_drama_cast_drama_order", "drama_cast", ["drama_id", "billing_order"], unique=False)

    # --- drama_videos ---
    op.create_table(
        "drama_videos",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        _drama_fk(),
        sa.Column("tmdb_video_id", sa.String(length=64), nullable=False),
        sa.Column("key", sa.String(length=128), nullable=False),
        sa.Column("site", sa.String(length=32), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("name", sa.String(length=512), nullable=True),
        sa.Column("size", sa.Integer(), nullable=True),
        sa.Column("official", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("type IN ('Trailer', 'Teaser')", name="ck_drama_videos_video_type"),
    )
    op.create_index("ix_drama_videos_drama_id", "drama_videos", ["drama_id"], unique=False)

    # --- drama_images ---
    op.create_table(
        "drama_images",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        _drama_fk(),
        sa.Column("file_path", sa.String(length=256), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("aspect_ratio", sa.Float(), nullable=True),
        sa.Column("vote_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("vote_average", sa.Float(), nullable=True),
        sa.Column("language", sa.String(length=16), nullable=True),
        sa.CheckConstraint("type IN ('backdrop', 'poster', 'logo')", name="ck_drama_images_image_type"),
    )
    op.create_index("ix_drama_images_drama_id", "drama_images", ["drama_id"], unique=False)
    op.create_index("ix_drama_images_drama_type", "drama_images", ["drama_id", "type"], unique=False)

    # --- drama_seasons ---
    op.create_table(
        "drama_seasons",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        _drama_fk(),
        sa.Column("tmdb_season_id", sa.Integer(), nullable=True),
        sa.Column("season_number", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=256), nullable=True),
        sa.Column("overview", sa.Text(), nullable=True),
        sa.Column("poster_path", sa.String(length=256), nullable=True),
        sa.Column("air_date", sa.Date(), nullable=True),
        sa.Column("episode_count", sa.Integer(), nullable=True),
        sa.UniqueConstraint("drama_id", "season_number", name="uq_drama_seasons_drama_number"),
    )
    op.create_index("ix_drama_seasons_drama_id", "drama_seasons", ["drama_id"], unique=False)

    # --- server-side helpers ---
    op.execute(_NEEDS_REFRESH_SQL)
    op.execute(_upsert_function_sql())


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS upsert_drama_cache")
    op.execute("DROP FUNCTION IF EXISTS drama_needs_refresh(integer, integer)")

    op.drop_index("ix_drama_seasons_drama_id", table_name="drama_seasons")
    op.drop_table("drama_seasons")

    op.drop_index("ix_drama_images_drama_type", table_name="drama_images")
    op.drop_index("ix_drama_images_drama_id", table_name="drama_images")
    op.drop_table("drama_images")

    op.drop_index("ix_drama_videos_drama_id", table_name="drama_videos")
    op.drop_table("drama_videos")

    op.drop_index("ix_drama_cast_drama_order", table_name="drama_cast")
    op.drop_index("ix_drama_cast_drama_id", table_name="drama_cast")
    op.drop_table("drama_cast")

    op.drop_index("ix_dramas_last_update", table_name="dramas")
    op.drop_index("ix_dramas_popularity", table_name="dramas")
    op.drop_index("ix_dramas_tmdb_id", table_name="dramas")
    op.drop_table("dramas")
