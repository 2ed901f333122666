# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio.
# Los métodos from_dict() validan la forma de los datos que llegan desde
# el almacenamiento local o desde la red: un payload mal formado lanza
# ValidationError en lugar de propagarse como dict suelto.
# ==============================================================================

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from tienda_pos.errors import ValidationError


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class EstadoPedido(str, Enum):
    """Estados de un pedido. Solo se sale de PENDIENTE, nunca se vuelve."""
    PENDIENTE = "pendiente"
    COMPLETADO = "completado"
    CANCELADO = "cancelado"


class MetodoPago(str, Enum):
    """Métodos de pago aceptados."""
    EFECTIVO = "efectivo"
    TARJETA = "tarjeta"
    TRANSFERENCIA = "transferencia"


# La tabla pedidos solo acepta estos dos (check constraint)
METODOS_PAGO_PEDIDO = frozenset([MetodoPago.TRANSFERENCIA.value, MetodoPago.EFECTIVO.value])
METODOS_PAGO_VENTA = frozenset(m.value for m in MetodoPago)


class OperacionPendiente(str, Enum):
    """Operaciones que pueden quedar en cola para sincronizar."""
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


# ==============================================================================
# HELPERS DE VALIDACIÓN
# ==============================================================================

def _require(data: Dict[str, Any], fields: List[str], entity: str) -> None:
    if not isinstance(data, dict):
        raise ValidationError(f"{entity}: se esperaba un objeto, llegó {type(data).__name__}")
    missing = [f for f in fields if data.get(f) is None]
    if missing:
        raise ValidationError(f"{entity}: faltan campos {', '.join(missing)}")


def _to_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} debe ser numérico (recibido: {value!r})")


def _to_int(value: Any, name: str) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} debe ser entero (recibido: {value!r})")
    if not number.is_integer():
        raise ValidationError(f"{name} debe ser entero (recibido: {value!r})")
    return int(number)


def _parse_lineas(raw: Any, entity: str) -> List['LineaPedido']:
    # jsonb puede llegar serializado como texto
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            raise ValidationError(f"{entity}: productos no es JSON válido")
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError(f"{entity}: productos debe ser una lista")
    return [LineaPedido.from_dict(item) for item in raw]


# ==============================================================================
# ENTIDADES DE INVENTARIO
# ==============================================================================

@dataclass
class Producto:
    """
    Producto del inventario (tabla productos).

    Attributes:
        codigo_barras: Código único del producto
        nombre: Nombre visible
        precio: Precio unitario (positivo)
        stock: Unidades disponibles (nunca negativo)
        id: ID del servidor o temporal ('temp_<ms>') si se creó offline
        imagen_url: URL pública de la imagen en el storage
        created_at: Timestamp ISO de creación
    """
    codigo_barras: str
    nombre: str
    precio: float
    stock: int
    id: Optional[str] = None
    imagen_url: Optional[str] = None
    created_at: Optional[str] = None

    TEMP_PREFIX = 'temp_'

    @property
    def es_temporal(self) -> bool:
        """True si el ID fue generado localmente y aún no existe en el servidor."""
        return isinstance(self.id, str) and self.id.startswith(self.TEMP_PREFIX)

    @property
    def disponible(self) -> bool:
        return self.stock > 0

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario con los nombres de columna de la tabla."""
        d = {
            'codigo_barras': self.codigo_barras,
            'nombre': self.nombre,
            'precio': self.precio,
            'stock': self.stock,
            'imagen_url': self.imagen_url,
            'created_at': self.created_at,
        }
        if self.id is not None:
            d['id'] = self.id
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Producto':
        """Crea instancia desde diccionario."""
        _require(data, ['codigo_barras', 'nombre', 'precio', 'stock'], 'Producto')
        return cls(
            codigo_barras=str(data['codigo_barras']),
            nombre=str(data['nombre']),
            precio=_to_float(data['precio'], 'precio'),
            stock=_to_int(data['stock'], 'stock'),
            id=data.get('id'),
            imagen_url=data.get('imagen_url'),
            created_at=data.get('created_at'),
        )


# ==============================================================================
# ENTIDADES DE CARRITO Y PEDIDOS
# ==============================================================================

@dataclass
class LineaPedido:
    """
    Snapshot de un producto dentro de un pedido o una venta.
    Se guarda como JSON en las columnas `productos`.
    """
    id: Any
    nombre: str
    cantidad: int
    precio: float

    @property
    def subtotal(self) -> float:
        return round(self.cantidad * self.precio, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'nombre': self.nombre,
            'cantidad': self.cantidad,
            'precio': self.precio,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LineaPedido':
        _require(data, ['id', 'nombre', 'cantidad', 'precio'], 'LineaPedido')
        cantidad = _to_int(data['cantidad'], 'cantidad')
        if cantidad <= 0:
            raise ValidationError(f"LineaPedido: cantidad debe ser mayor a 0 ({cantidad})")
        precio = _to_float(data['precio'], 'precio')
        if precio < 0:
            raise ValidationError(f"LineaPedido: precio negativo ({precio})")
        return cls(id=data['id'], nombre=str(data['nombre']), cantidad=cantidad, precio=precio)


@dataclass
class CartItem:
    """
    Item del carrito.

    `stock` es el stock que tenía el producto al momento de agregarlo;
    la cantidad nunca puede superarlo.
    """
    id: Any
    nombre: str
    precio: float
    cantidad: int
    stock: int

    @property
    def subtotal(self) -> float:
        return round(self.cantidad * self.precio, 2)

    def to_linea(self) -> LineaPedido:
        return LineaPedido(id=self.id, nombre=self.nombre, cantidad=self.cantidad, precio=self.precio)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'nombre': self.nombre,
            'precio': self.precio,
            'cantidad': self.cantidad,
            'stock': self.stock,
        }

    @classmethod
    def from_producto(cls, producto: Producto, cantidad: int = 1) -> 'CartItem':
        return cls(
            id=producto.id,
            nombre=producto.nombre,
            precio=producto.precio,
            cantidad=cantidad,
            stock=producto.stock,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CartItem':
        _require(data, ['id', 'nombre', 'precio', 'cantidad', 'stock'], 'CartItem')
        return cls(
            id=data['id'],
            nombre=str(data['nombre']),
            precio=_to_float(data['precio'], 'precio'),
            cantidad=_to_int(data['cantidad'], 'cantidad'),
            stock=_to_int(data['stock'], 'stock'),
        )


@dataclass
class Pedido:
    """
    Pedido realizado desde el catálogo público (tabla pedidos).

    Ciclo de vida:
        pendiente → completado  (entrega confirmada en el POS)
        pendiente → cancelado
    completado y cancelado son terminales.
    """
    cliente: str
    productos: List[LineaPedido]
    total: float
    metodo_pago: str
    tiempo_llegada: str
    estado: str = EstadoPedido.PENDIENTE.value
    id: Optional[str] = None
    created_at: Optional[str] = None

    def puede_cambiar_a(self, nuevo_estado: str) -> bool:
        """Las transiciones solo salen de 'pendiente' y nunca vuelven a él."""
        if nuevo_estado not in {e.value for e in EstadoPedido}:
            return False
        return self.estado == EstadoPedido.PENDIENTE.value and nuevo_estado != EstadoPedido.PENDIENTE.value

    @property
    def cantidad_articulos(self) -> int:
        return sum(linea.cantidad for linea in self.productos)

    def to_dict(self) -> Dict[str, Any]:
        d = {
            'cliente': self.cliente,
            'productos': [linea.to_dict() for linea in self.productos],
            'total': self.total,
            'metodo_pago': self.metodo_pago,
            'tiempo_llegada': self.tiempo_llegada,
            'estado': self.estado,
            'created_at': self.created_at,
        }
        if self.id is not None:
            d['id'] = self.id
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Pedido':
        _require(data, ['cliente', 'productos', 'total'], 'Pedido')
        return cls(
            cliente=str(data['cliente']),
            productos=_parse_lineas(data.get('productos'), 'Pedido'),
            total=_to_float(data['total'], 'total'),
            metodo_pago=data.get('metodo_pago') or '',
            tiempo_llegada=data.get('tiempo_llegada') or '',
            estado=data.get('estado') or EstadoPedido.PENDIENTE.value,
            id=data.get('id'),
            created_at=data.get('created_at'),
        )


# ==============================================================================
# ENTIDADES DE VENTAS
# ==============================================================================

@dataclass
class Venta:
    """
    Registro de venta (tabla ventas_diarias). Solo se agregan, nunca se editan.

    pedido_id es None para ventas directas del POS.
    """
    total: float
    metodo_pago: str
    productos: List[LineaPedido]
    pedido_id: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def fecha(self) -> str:
        """Fecha YYYY-MM-DD tomada del timestamp de creación."""
        return (self.created_at or '').split('T')[0]

    def to_dict(self) -> Dict[str, Any]:
        d = {
            'pedido_id': self.pedido_id,
            'total': self.total,
            'metodo_pago': self.metodo_pago,
            'productos': [linea.to_dict() for linea in self.productos],
            'created_at': self.created_at,
        }
        if self.id is not None:
            d['id'] = self.id
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Venta':
        _require(data, ['total'], 'Venta')
        return cls(
            total=_to_float(data['total'], 'total'),
            metodo_pago=data.get('metodo_pago') or '',
            productos=_parse_lineas(data.get('productos'), 'Venta'),
            pedido_id=data.get('pedido_id'),
            id=data.get('id'),
            created_at=data.get('created_at'),
        )


@dataclass
class VentasDia:
    """Agrupación de ventas de un día para el reporte."""
    fecha: str
    total: float = 0.0
    cantidad: int = 0
    ventas: List[Venta] = field(default_factory=list)

    def agregar(self, venta: Venta) -> None:
        self.total = round(self.total + venta.total, 2)
        self.cantidad += 1
        self.ventas.append(venta)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fecha': self.fecha,
            'total': self.total,
            'cantidad': self.cantidad,
            'ventas': [v.to_dict() for v in self.ventas],
        }

    @classmethod
    def agrupar(cls, ventas: List[Venta]) -> List['VentasDia']:
        """
        Agrupa ventas por la fecha de su timestamp.

        Returns:
            Un VentasDia por fecha, ordenados de la más reciente a la más antigua
        """
        grupos: Dict[str, VentasDia] = {}
        for venta in ventas:
            fecha = venta.fecha
            if fecha not in grupos:
                grupos[fecha] = cls(fecha=fecha)
            grupos[fecha].agregar(venta)
        return sorted(grupos.values(), key=lambda g: g.fecha, reverse=True)


# ==============================================================================
# SINCRONIZACIÓN
# ==============================================================================

@dataclass
class PendingChange:
    """
    Cambio que no pudo llegar al servidor y espera ser reenviado.

    Attributes:
        operation: insert | update | delete
        data: Payload de la operación (para update/delete incluye 'id')
        timestamp: Momento en que se encoló (epoch en milisegundos)
    """
    operation: str
    data: Dict[str, Any]
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {'operation': self.operation, 'data': self.data, 'timestamp': self.timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PendingChange':
        _require(data, ['operation', 'data'], 'PendingChange')
        operation = data['operation']
        if operation not in {op.value for op in OperacionPendiente}:
            raise ValidationError(f"PendingChange: operación desconocida '{operation}'")
        if not isinstance(data['data'], dict):
            raise ValidationError("PendingChange: data debe ser un objeto")
        return cls(
            operation=operation,
            data=data['data'],
            timestamp=_to_int(data.get('timestamp', 0), 'timestamp'),
        )


# ==============================================================================
# EVENTOS (canal publish/subscribe)
# ==============================================================================

@dataclass
class ProductChanged:
    """
    Cambio en la tabla productos.

    event_type: INSERT | UPDATE | DELETE (notificación del servidor)
                o SYNC (se reenviaron cambios pendientes)
    """
    event_type: str
    new: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = None


@dataclass
class OrderCreated:
    """Llegó un pedido nuevo desde el catálogo."""
    pedido: Pedido
