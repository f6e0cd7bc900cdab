"""initial_voting_schema

Revision ID: a7f3c9e2d418
Revises:
Create Date: 2025-11-12 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a7f3c9e2d418'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('dni', sa.String(length=9), nullable=False),
        sa.Column('nombre', sa.String(length=100), nullable=False),
        sa.Column('apellidos', sa.String(length=100), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('autorizado_votar', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('fecha_registro', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_dni', 'users', ['dni'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'user_sessions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_lookup_key', sa.String(length=64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_activity', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_lookup_key'),
    )
    op.create_index('idx_user_sessions_user', 'user_sessions', ['user_id'])
    op.create_index('idx_user_sessions_token', 'user_sessions', ['token_lookup_key'])

    op.create_table(
        'votaciones',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('titulo', sa.String(length=200), nullable=False),
        sa.Column('descripcion', sa.Text(), nullable=True),
        sa.Column('tipo', sa.String(length=20), nullable=False, server_default='votacion'),
        sa.Column('fecha_inicio', sa.DateTime(timezone=True), nullable=False),
        sa.Column('fecha_fin', sa.DateTime(timezone=True), nullable=False),
        sa.Column('publicado', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('resultados_publicos', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('multiple_respuestas', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('creado_por', sa.String(length=100), nullable=True),
        sa.Column('fecha_creacion', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'idx_votaciones_publicado_window', 'votaciones',
        ['publicado', 'fecha_inicio', 'fecha_fin'],
    )

    op.create_table(
        'opciones_votacion',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('votacion_id', sa.Integer(), nullable=False),
        sa.Column('texto', sa.String(length=200), nullable=False),
        sa.Column('orden', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('fecha_creacion', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['votacion_id'], ['votaciones.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_opciones_votacion', 'opciones_votacion', ['votacion_id'])

    # One voting event per member and poll; concurrent casts race on this
    op.create_table(
        'participaciones_votacion',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('votacion_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=20), nullable=False),
        sa.Column('fecha_voto', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['votacion_id'], ['votaciones.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('votacion_id', 'user_id', name='uq_participacion_votacion_user'),
    )

    op.create_table(
        'votos',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('votacion_id', sa.Integer(), nullable=False),
        sa.Column('opcion_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=20), nullable=False),
        sa.Column('user_email', sa.String(length=255), nullable=False),
        sa.Column('fecha_voto', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['votacion_id'], ['votaciones.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['opcion_id'], ['opciones_votacion.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('votacion_id', 'user_id', 'opcion_id', name='uq_voto_votacion_user_opcion'),
    )
    op.create_index('idx_votos_votacion', 'votos', ['votacion_id'])
    op.create_index('idx_votos_opcion', 'votos', ['opcion_id'])


def downgrade():
    op.drop_index('idx_votos_opcion', table_name='votos')
    op.drop_index('idx_votos_votacion', table_name='votos')
    op.drop_table('votos')
    op.drop_table('participaciones_votacion')
    op.drop_index('idx_opciones_votacion', table_name='opciones_votacion')
    op.drop_table('opciones_votacion')
    op.drop_index('idx_votaciones_publicado_window', table_name='votaciones')
    op.drop_table('votaciones')
    op.drop_index('idx_user_sessions_token', table_name='user_sessions')
    op.drop_index('idx_user_sessions_user', table_name='user_sessions')
    op.drop_table('user_sessions')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_dni', table_name='users')
    op.drop_table('users')
