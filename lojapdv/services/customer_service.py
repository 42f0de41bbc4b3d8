"""Customer service - store-scoped customer records."""
import logging
import re
from typing import List, Optional
from urllib.parse import quote

from sqlalchemy import or_

from lojapdv.models import Customer
from lojapdv.exceptions import BusinessLogicError, NotFoundError, PdvError
from lojapdv.utils.formatters import datetime_br, safe_csv

logger = logging.getLogger(__name__)

CUSTOMERS_CSV_HEADER = ['Nome', 'Telefone', 'Endereço', 'Bairro', 'Cidade', 'Data cadastro']

EDITABLE_FIELDS = ('name', 'phone', 'address', 'neighborhood', 'city')


def _blank_to_none(value) -> Optional[str]:
    text = (value or '').strip()
    return text or None


def list_customers(session, store_id: int, term: str = '', limit: int = 300) -> List[Customer]:
    """Customers of the store, newest first."""
    query = session.query(Customer).filter(Customer.store_id == store_id)

    term = (term or '').strip()
    if term:
        like = f"%{term}%"
        query = query.filter(or_(
            Customer.name.ilike(like),
            Customer.phone.ilike(like),
            Customer.address.ilike(like),
            Customer.neighborhood.ilike(like),
            Customer.city.ilike(like),
        ))

    return query.order_by(Customer.created_at.desc(), Customer.id.desc()).limit(limit).all()


def get_customer(session, store_id: int, customer_id: int) -> Customer:
    customer = session.query(Customer).filter(
        Customer.id == customer_id,
        Customer.store_id == store_id
    ).first()
    if not customer:
        raise NotFoundError('Cliente não encontrado')
    return customer


def create_customer(session, store_id: int, name, phone=None, address=None,
                    neighborhood=None, city=None) -> Customer:
    """
    Create a customer. Only the name is required; blank fields are stored as NULL.

    Raises:
        BusinessLogicError: missing name or database failure
    """
    name = (name or '').strip()
    if not name:
        raise BusinessLogicError('Preencha pelo menos o Nome.')

    try:
        customer = Customer(
            store_id=store_id,
            name=name,
            phone=_blank_to_none(phone),
            address=_blank_to_none(address),
            neighborhood=_blank_to_none(neighborhood),
            city=_blank_to_none(city),
        )
        session.add(customer)
        session.commit()
        logger.info(f"Customer created: store={store_id} id={customer.id}")
        return customer
    except Exception as e:
        session.rollback()
        raise BusinessLogicError(f'Erro ao salvar cliente: {str(e)}')


def update_customer(session, store_id: int, customer_id: int, **changes) -> Customer:
    """
    Inline update of name/phone/address/neighborhood/city.

    Unknown keys are ignored. The name cannot be blanked.
    """
    customer = get_customer(session, store_id, customer_id)

    try:
        for field_name, value in changes.items():
            if field_name not in EDITABLE_FIELDS:
                continue
            if field_name == 'name':
                name = (value or '').strip()
                if not name:
                    raise BusinessLogicError('O nome não pode ficar vazio.')
                customer.name = name
            else:
                setattr(customer, field_name, _blank_to_none(value))

        session.commit()
        return customer
    except PdvError:
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        raise BusinessLogicError(f'Erro ao atualizar cliente: {str(e)}')


def delete_customer(session, store_id: int, customer_id: int) -> None:
    """Delete a customer; their past sales become "Indefinido"."""
    customer = get_customer(session, store_id, customer_id)

    try:
        for sale in customer.sales:
            sale.customer_id = None
        session.delete(customer)
        session.commit()
        logger.info(f"Customer deleted: store={store_id} id={customer_id}")
    except Exception as e:
        session.rollback()
        raise BusinessLogicError(f'Erro ao remover cliente: {str(e)}')


def export_customers_csv(customers: List[Customer]) -> str:
    """Customers as ';'-separated CSV, oldest first."""
    ordered = sorted(customers, key=lambda c: (c.created_at is None, c.created_at, c.id))

    lines = [';'.join(CUSTOMERS_CSV_HEADER)]
    for c in ordered:
        lines.append(';'.join([
            safe_csv(c.name),
            safe_csv(c.phone),
            safe_csv(c.address),
            safe_csv(c.neighborhood),
            safe_csv(c.city),
            datetime_br(c.created_at),
        ]))
    return '\n'.join(lines) + '\n'


def whatsapp_link(phone, name='') -> Optional[str]:
    """
    wa.me link for a customer phone.

    55 (Brazil) is prefixed unless the number already starts with it or
    has more than 11 digits. None when the phone has no digits.
    """
    digits = re.sub(r'\D', '', phone or '')
    if not digits:
        return None

    full = digits if digits.startswith('55') or len(digits) > 11 else f"55{digits}"
    message = f"Olá {name or ''}!"
    return f"https://wa.me/{full}?text={quote(message)}"


def customer_to_dict(customer: Customer) -> dict:
    return {
        'id': customer.id,
        'name': customer.name,
        'phone': customer.phone,
        'address': customer.address,
        'neighborhood': customer.neighborhood,
        'city': customer.city,
        'created_at': customer.created_at.isoformat() if customer.created_at else None,
        'whatsapp_url': whatsapp_link(customer.phone, customer.name),
    }
