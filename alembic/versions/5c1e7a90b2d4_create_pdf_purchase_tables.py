"""create pdf purchase tables

Revision ID: 5c1e7a90b2d4
Revises:
Create Date: 2026-10-19 09:12:40.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c1e7a90b2d4'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('can_login', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False)
    )
    op.create_index('ix_user_email', 'user', ['email'])

    op.create_table(
        'item',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('file_key', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False)
    )

    op.create_table(
        'pdf_order',
        sa.Column('id', sa.String(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('guest_email', sa.String(), nullable=True),
        sa.Column('item_id', sa.Integer(), sa.ForeignKey('item.id'), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(), nullable=False),
        sa.Column('gateway', sa.String(), nullable=False),
        sa.Column('gateway_order_id', sa.String(), nullable=True),
        sa.Column('gateway_payment_id', sa.String(), nullable=True),
        sa.Column('gateway_signature', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True)
    )
    op.create_index('ix_pdf_order_user_id', 'pdf_order', ['user_id'])
    op.create_index('ix_pdf_order_guest_email', 'pdf_order', ['guest_email'])
    op.create_index('ix_pdf_order_item_id', 'pdf_order', ['item_id'])
    op.create_index('ix_pdf_order_gateway_order_id', 'pdf_order', ['gateway_order_id'])
    op.create_index('ix_pdf_order_gateway_payment_id', 'pdf_order', ['gateway_payment_id'])
    op.create_index('ix_pdf_order_status', 'pdf_order', ['status'])

    op.create_table(
        'paymentsettings',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('payments_enabled', sa.Boolean(), nullable=False),
        sa.Column('razorpay_enabled', sa.Boolean(), nullable=False),
        sa.Column('razorpay_key_id', sa.String(), nullable=True),
        sa.Column('razorpay_key_secret', sa.String(), nullable=True),
        sa.Column('stripe_enabled', sa.Boolean(), nullable=False),
        sa.Column('stripe_publishable_key', sa.String(), nullable=True),
        sa.Column('stripe_secret_key', sa.String(), nullable=True),
        sa.Column('currency', sa.String(), server_default='INR', nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False)
    )


def downgrade() -> None:
    op.drop_table('paymentsettings')
    op.drop_index('ix_pdf_order_status', table_name='pdf_order')
    op.drop_index('ix_pdf_order_gateway_payment_id', table_name='pdf_order')
    op.drop_index('ix_pdf_order_gateway_order_id', table_name='pdf_order')
    op.drop_index('ix_pdf_order_item_id', table_name='pdf_order')
    op.drop_index('ix_pdf_order_guest_email', table_name='pdf_order')
    op.drop_index('ix_pdf_order_user_id', table_name='pdf_order')
    op.drop_table('pdf_order')
    op.drop_table('item')
    op.drop_index('ix_user_email', table_name='user')
    op.drop_table('user')
