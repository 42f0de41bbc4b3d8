"""
Product catalog service - store-scoped.
Handles code allocation, product creation, inline edits and lookups.
"""
import logging
import re
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func, or_

from lojapdv.models import Product, DEFAULT_BRAND
from lojapdv.exceptions import BusinessLogicError, NotFoundError
from lojapdv.utils.formatters import code_br
from lojapdv.utils.number_format import parse_br_number, round2

logger = logging.getLogger(__name__)

CODE_FORMAT_ERROR = 'Para evitar confusão, use o formato: 1* (com asterisco).'
CODE_NOT_FOUND = 'ID não encontrado.'


def format_code(code: Optional[int]) -> str:
    """Display code: "12*", "—" when the product has no code."""
    return code_br(code)


def product_label(product) -> str:
    """
    Label used by list-entry pickers: "description • brand (N*)".

    The brand part is omitted when the product has none.
    """
    brand = (product.brand or '').strip()
    brand_part = f" • {brand}" if brand else ""
    return f"{product.description}{brand_part} ({format_code(product.code)})"


def parse_code_strict(raw) -> Optional[int]:
    """
    Parse a typed code that must end with "*" ("12*" -> 12).

    Returns:
        int code, or None when the text is empty, lacks the asterisk or
        the number part is not numeric.
    """
    text = (raw or '').strip()
    if not text or not text.endswith('*'):
        return None
    number_part = text[:-1].strip()
    try:
        return int(Decimal(number_part))
    except Exception:
        return None


def code_digits(raw) -> Optional[int]:
    """Digits of a typed code, ignoring anything else ("1 2a" -> 12)."""
    digits = re.sub(r'\D', '', raw or '')
    if not digits:
        return None
    return int(digits)


def parse_min_stock(value) -> Optional[int]:
    """
    Minimum stock from typed text.

    "-" or blank means no threshold (None); otherwise truncated to an
    integer >= 0. Unparseable text also means no threshold.
    """
    if value is None:
        return None
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        number = Decimal(str(value))
    else:
        text = str(value).strip()
        if not text or text == '-':
            return None
        try:
            number = Decimal(text.replace(',', '.', 1))
        except Exception:
            return None
    if not number.is_finite():
        return None
    return max(0, int(number))


def normalize_brand(value) -> str:
    """Blank or any casing of "outros" becomes the default brand."""
    text = (value or '').strip()
    if not text or text.lower() == DEFAULT_BRAND.lower():
        return DEFAULT_BRAND
    return text


def _parse_price(value) -> Decimal:
    try:
        return round2(parse_br_number(value))
    except ValueError:
        raise BusinessLogicError('Preço inválido.')


class ProductCatalog:
    """
    In-memory lookup over a store's products.

    Built once per request from the store's product list. Resolution
    order used by the cart and bulk entry: id, then "N*" code, then the
    exact generated label.
    """

    def __init__(self, products):
        self._products: List = list(products)
        self._by_id: Dict[int, object] = {p.id: p for p in self._products}
        self._by_code: Dict[int, object] = {
            p.code: p for p in self._products if p.code is not None
        }
        self._by_label: Dict[str, object] = {}
        for p in self._products:
            self._by_label.setdefault(product_label(p), p)

    @classmethod
    def for_store(cls, session, store_id: int) -> 'ProductCatalog':
        products = (
            session.query(Product)
            .filter(Product.store_id == store_id)
            .order_by(Product.code.is_(None), Product.code.asc())
            .all()
        )
        return cls(products)

    def __len__(self):
        return len(self._products)

    def __iter__(self):
        return iter(self._products)

    def get_product(self, product_id):
        if product_id in (None, ''):
            return None
        try:
            return self._by_id.get(int(product_id))
        except (TypeError, ValueError):
            return None

    def find_by_code(self, code: Optional[int]):
        if code is None:
            return None
        return self._by_code.get(code)

    def find_by_code_text(self, raw):
        """Strict "N*" lookup."""
        return self.find_by_code(parse_code_strict(raw))

    def find_by_label(self, label):
        if not label:
            return None
        return self._by_label.get(label.strip())

    def suggestion(self, raw):
        """Product whose code equals the digits typed so far, if any."""
        return self.find_by_code(code_digits(raw))

    def resolve(self, product_id=None, code_text=None, label=None):
        """First product found by id, then code text, then label."""
        product = self.get_product(product_id)
        if product is None and code_text and code_text.strip():
            product = self.find_by_code_text(code_text)
        if product is None and label and label.strip():
            product = self.find_by_label(label)
        return product

    def quick_entry(self, raw):
        """
        Product for the quick-entry box.

        A digits suggestion wins even without the asterisk; otherwise the
        text must be "N*".

        Raises:
            BusinessLogicError: bad format or unknown code
        """
        suggested = self.suggestion(raw)
        if suggested is not None:
            return suggested

        code = parse_code_strict(raw)
        if code is None:
            raise BusinessLogicError(CODE_FORMAT_ERROR)

        product = self.find_by_code(code)
        if product is None:
            raise NotFoundError(CODE_NOT_FOUND)
        return product

    def labels(self) -> List[dict]:
        return [{'id': p.id, 'label': product_label(p)} for p in self._products]


def next_product_code(session, store_id: int) -> int:
    """Next sequential code for the store: max(code) + 1 (1 for an empty store)."""
    current = session.query(func.max(Product.code)).filter(
        Product.store_id == store_id
    ).scalar()
    return int(current or 0) + 1


def create_product(session, store_id: int, kind, description, supplier,
                   unit_price, brand=None, min_stock=None) -> Product:
    """
    Create a product with the next code of the store.

    Args:
        kind, description, supplier: required text
        unit_price: number or BR-formatted text
        brand: blank/"outros" -> "Outros"
        min_stock: "-"/blank -> no threshold, else integer >= 0

    Raises:
        BusinessLogicError: missing fields or invalid price
    """
    kind = (kind or '').strip()
    description = (description or '').strip()
    supplier = (supplier or '').strip()

    if not kind or not description or not supplier:
        raise BusinessLogicError('Preencha pelo menos: Tipo, Descrição e Fornecedor.')

    price = _parse_price(unit_price)

    try:
        product = Product(
            store_id=store_id,
            code=next_product_code(session, store_id),
            kind=kind,
            description=description,
            brand=normalize_brand(brand),
            supplier=supplier,
            unit_price=price,
            min_stock=parse_min_stock(min_stock),
        )
        session.add(product)
        session.commit()
        logger.info(f"Product created: store={store_id} code={product.code} id={product.id}")
        return product
    except Exception as e:
        session.rollback()
        raise BusinessLogicError(f'Erro ao salvar: {str(e)}')


def get_product(session, store_id: int, product_id: int) -> Product:
    product = session.query(Product).filter(
        Product.id == product_id,
        Product.store_id == store_id
    ).first()
    if not product:
        raise NotFoundError('Produto não encontrado')
    return product


def update_price(session, store_id: int, product_id: int, value) -> Product:
    """Inline price edit. Invalid text is rejected, the stored price is kept."""
    product = get_product(session, store_id, product_id)
    price = _parse_price(value)
    try:
        product.unit_price = price
        session.commit()
        return product
    except Exception as e:
        session.rollback()
        raise BusinessLogicError(f'Erro ao atualizar preço: {str(e)}')


def update_min_stock(session, store_id: int, product_id: int, value) -> Product:
    """Inline minimum edit ("-" clears the threshold)."""
    product = get_product(session, store_id, product_id)
    try:
        product.min_stock = parse_min_stock(value)
        session.commit()
        return product
    except Exception as e:
        session.rollback()
        raise BusinessLogicError(f'Erro ao atualizar estoque mínimo: {str(e)}')


def search_products(session, store_id: int, term: str = '', brand_or_supplier: str = '',
                    limit: Optional[int] = None) -> List[Product]:
    """
    Store products ordered by code (products without code last).

    term matches code, kind, description, brand or supplier;
    brand_or_supplier narrows by either of those two fields.
    """
    query = session.query(Product).filter(Product.store_id == store_id)

    term = (term or '').strip()
    if term:
        like = f"%{term}%"
        conditions = [
            Product.kind.ilike(like),
            Product.description.ilike(like),
            Product.brand.ilike(like),
            Product.supplier.ilike(like),
        ]
        code = code_digits(term)
        if code is not None and term.rstrip('*').strip().isdigit():
            conditions.append(Product.code == code)
        query = query.filter(or_(*conditions))

    bs = (brand_or_supplier or '').strip()
    if bs:
        like = f"%{bs}%"
        query = query.filter(or_(Product.brand.ilike(like), Product.supplier.ilike(like)))

    query = query.order_by(Product.code.is_(None), Product.code.asc(), Product.id.asc())
    if limit:
        query = query.limit(limit)
    return query.all()


def known_brands(session, store_id: int) -> List[str]:
    """Distinct brands, alphabetical, "Outros" always present and first when missing."""
    rows = session.query(Product.brand).filter(
        Product.store_id == store_id,
        Product.brand.isnot(None)
    ).distinct().all()
    brands = sorted({(r[0] or '').strip() for r in rows if (r[0] or '').strip()})
    if DEFAULT_BRAND not in brands:
        brands.insert(0, DEFAULT_BRAND)
    return brands


def product_to_dict(product, quantity=None) -> dict:
    data = {
        'id': product.id,
        'code': product.code,
        'code_display': format_code(product.code),
        'kind': product.kind,
        'description': product.description,
        'brand': product.brand or DEFAULT_BRAND,
        'supplier': product.supplier,
        'unit_price': str(round2(product.unit_price)),
        'min_stock': product.min_stock,
        'last_cost': str(round2(product.last_cost)) if product.last_cost is not None else None,
        'label': product_label(product),
    }
    if quantity is not None:
        data['quantity'] = str(quantity)
    return data
