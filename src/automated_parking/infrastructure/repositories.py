# File: src/automated_parking/infrastructure/repositories.py
"""
Repository Pattern Implementation for the Automated Parking Lot

This module implements the Repository Pattern for data persistence.
Repositories provide a collection-like interface over the four tables of the
lot (floors, parking_spaces, parking_records, bills) while hiding SQLAlchemy
from the application layer.

Concurrency:
- Every state change is a conditional UPDATE (compare-and-swap) that returns
  whether the row was still in the expected state
- Floor rows can be read FOR UPDATE on backends with row-level locks
- Storage-level unique constraints back the one-space-per-vehicle and
  one-open-record-per-vehicle invariants

Components:
1. SQLAlchemy ORM models
2. Domain <-> ORM mapper
3. Repositories per table
4. Unit of Work (one transaction per public operation)
5. Repository factory (engine and session setup)
"""

from abc import ABC, abstractmethod
from typing import (
    Type, TypeVar, Generic, Optional, List, Dict, Any, Callable, Tuple
)
from datetime import datetime
from decimal import Decimal
from dataclasses import replace
import logging

from sqlalchemy import (
    create_engine, Column, Integer, BigInteger, String, DateTime, Index,
    UniqueConstraint, func, select, text
)
from sqlalchemy.types import TypeDecorator
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.pool import StaticPool

from ..domain.models import (
    Floor, ParkingSpace, ParkingRecord, Bill, ParkingStatus, to_amount
)

# Type variables for generic repositories
T = TypeVar('T')  # Domain entity type
ID = TypeVar('ID')  # ID type


# ============================================================================
# REPOSITORY INTERFACES
# ============================================================================

class Repository(ABC, Generic[T, ID]):
    """Base repository interface"""

    @abstractmethod
    def add(self, entity: T) -> T:
        """Add an entity to the repository"""
        pass

    @abstractmethod
    def get(self, id: ID) -> Optional[T]:
        """Get an entity by ID"""
        pass

    @abstractmethod
    def get_all(self) -> List[T]:
        """Get all entities"""
        pass

    @abstractmethod
    def count(self) -> int:
        """Count all entities"""
        pass


class UnitOfWork(ABC):
    """Unit of Work pattern for transaction management"""

    @abstractmethod
    def __enter__(self):
        pass

    @abstractmethod
    def __exit__(self, exc_type, exc_val, exc_tb):
        pass

    @abstractmethod
    def commit(self):
        """Commit the transaction"""
        pass

    @abstractmethod
    def rollback(self):
        """Rollback the transaction"""
        pass

    @property
    @abstractmethod
    def floors(self) -> 'FloorRepository':
        pass

    @property
    @abstractmethod
    def parking_spaces(self) -> 'ParkingSpaceRepository':
        pass

    @property
    @abstractmethod
    def parking_records(self) -> 'ParkingRecordRepository':
        pass

    @property
    @abstractmethod
    def bills(self) -> 'BillRepository':
        pass


# ============================================================================
# SQLALCHEMY ORM MODELS
# ============================================================================

Base = declarative_base()

OPEN_RECORD_CLAUSE = text("status = 'IN_PROGRESS'")


class FixedPoint(TypeDecorator):
    """
    Two-place decimal stored as an integer count of hundredths

    Values are rounded to two places on the way in, so a compare-and-swap
    against a value read back always matches the stored row.
    """
    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(to_amount(value).scaleb(2))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value).scaleb(-2)


class FloorModel(Base):
    """SQLAlchemy model for Floor"""
    __tablename__ = 'floors'

    id = Column(Integer, primary_key=True, autoincrement=True)
    number = Column(Integer, nullable=False)
    ceiling_height = Column(FixedPoint(), nullable=False)
    weight_capacity = Column(FixedPoint(), nullable=False)
    allowed_weight = Column(FixedPoint(), nullable=False)

    __table_args__ = (
        UniqueConstraint('number', name='uq_floor_number'),
    )


class ParkingSpaceModel(Base):
    """SQLAlchemy model for ParkingSpace"""
    __tablename__ = 'parking_spaces'

    id = Column(Integer, primary_key=True, autoincrement=True)
    floor = Column(Integer, nullable=False, index=True)
    occupying_vehicle_id = Column(String(64), nullable=True)

    __table_args__ = (
        # NULLs do not collide, so any number of spaces can be free
        UniqueConstraint('occupying_vehicle_id', name='uq_space_occupying_vehicle'),
    )


class ParkingRecordModel(Base):
    """SQLAlchemy model for ParkingRecord"""
    __tablename__ = 'parking_records'

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_id = Column(String(64), nullable=False, index=True)
    vehicle_weight = Column(FixedPoint(), nullable=False)
    vehicle_height = Column(FixedPoint(), nullable=False)
    allowed_weight_on_floor_before_parking = Column(FixedPoint(), nullable=False)
    parking_timestamp = Column(DateTime, nullable=False)
    emptying_timestamp = Column(DateTime, nullable=True)
    floor = Column(Integer, nullable=False)
    parking_space_id = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=ParkingStatus.IN_PROGRESS.value)

    __table_args__ = (
        Index(
            'uq_open_record_per_vehicle', 'vehicle_id',
            unique=True,
            sqlite_where=OPEN_RECORD_CLAUSE,
            postgresql_where=OPEN_RECORD_CLAUSE,
        ),
    )


class BillModel(Base):
    """SQLAlchemy model for Bill"""
    __tablename__ = 'bills'

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_id = Column(String(64), nullable=False, index=True)
    billing_from = Column(String(32), nullable=False)
    billing_to = Column(String(32), nullable=False)
    price_per_minute = Column(FixedPoint(), nullable=False)
    total_amount_to_be_paid = Column(FixedPoint(), nullable=False)


# ============================================================================
# DOMAIN <-> ORM MAPPERS
# ============================================================================

class Mapper:
    """Maps between domain models and ORM models"""

    @staticmethod
    def floor_to_orm(floor: Floor) -> FloorModel:
        return FloorModel(
            id=floor.id,
            number=floor.number,
            ceiling_height=floor.ceiling_height,
            weight_capacity=floor.weight_capacity,
            allowed_weight=floor.allowed_weight
        )

    @staticmethod
    def floor_to_domain(model: FloorModel) -> Floor:
        return Floor(
            id=model.id,
            number=model.number,
            ceiling_height=Decimal(model.ceiling_height),
            weight_capacity=Decimal(model.weight_capacity),
            allowed_weight=Decimal(model.allowed_weight)
        )

    @staticmethod
    def parking_space_to_orm(space: ParkingSpace) -> ParkingSpaceModel:
        return ParkingSpaceModel(
            id=space.id,
            floor=space.floor,
            occupying_vehicle_id=space.occupying_vehicle_id
        )

    @staticmethod
    def parking_space_to_domain(model: ParkingSpaceModel) -> ParkingSpace:
        return ParkingSpace(
            id=model.id,
            floor=model.floor,
            occupying_vehicle_id=model.occupying_vehicle_id
        )

    @staticmethod
    def parking_record_to_orm(record: ParkingRecord) -> ParkingRecordModel:
        return ParkingRecordModel(
            id=record.id,
            vehicle_id=record.vehicle_id,
            vehicle_weight=record.vehicle_weight,
            vehicle_height=record.vehicle_height,
            allowed_weight_on_floor_before_parking=record.allowed_weight_on_floor_before_parking,
            parking_timestamp=record.parking_timestamp,
            emptying_timestamp=record.emptying_timestamp,
            floor=record.floor,
            parking_space_id=record.parking_space_id,
            status=record.status.value
        )

    @staticmethod
    def parking_record_to_domain(model: ParkingRecordModel) -> ParkingRecord:
        return ParkingRecord(
            id=model.id,
            vehicle_id=model.vehicle_id,
            vehicle_weight=Decimal(model.vehicle_weight),
            vehicle_height=Decimal(model.vehicle_height),
            allowed_weight_on_floor_before_parking=Decimal(model.allowed_weight_on_floor_before_parking),
            parking_timestamp=model.parking_timestamp,
            emptying_timestamp=model.emptying_timestamp,
            floor=model.floor,
            parking_space_id=model.parking_space_id,
            status=ParkingStatus(model.status)
        )

    @staticmethod
    def bill_to_orm(bill: Bill) -> BillModel:
        return BillModel(
            id=bill.id,
            vehicle_id=bill.vehicle_id,
            billing_from=bill.billing_from,
            billing_to=bill.billing_to,
            price_per_minute=bill.price_per_minute,
            total_amount_to_be_paid=bill.total_amount_to_be_paid
        )

    @staticmethod
    def bill_to_domain(model: BillModel) -> Bill:
        return Bill(
            id=model.id,
            vehicle_id=model.vehicle_id,
            billing_from=model.billing_from,
            billing_to=model.billing_to,
            price_per_minute=Decimal(model.price_per_minute),
            total_amount_to_be_paid=Decimal(model.total_amount_to_be_paid)
        )


# ============================================================================
# SQLALCHEMY REPOSITORIES
# ============================================================================

class SQLAlchemyRepository(Repository[T, int], ABC):
    """Base SQLAlchemy repository"""

    def __init__(self, session: Session):
        self.session = session
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    @abstractmethod
    def model_class(self) -> Type[Base]:
        """Return SQLAlchemy model class"""
        pass

    @abstractmethod
    def to_domain(self, model: Base) -> T:
        """Convert ORM model to domain model"""
        pass

    @abstractmethod
    def to_orm(self, entity: T) -> Base:
        """Convert domain model to ORM model"""
        pass

    def add(self, entity: T) -> T:
        try:
            model = self.to_orm(entity)
            self.session.add(model)
            self.session.flush()
            self._logger.debug(f"Added {self.model_class.__tablename__} row: {model.id}")
            return replace(entity, id=model.id)
        except IntegrityError as e:
            self.session.rollback()
            self._logger.error(f"Integrity error adding entity: {e}")
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            self._logger.error(f"Database error adding entity: {e}")
            raise

    def get(self, id: int) -> Optional[T]:
        try:
            model = self.session.get(self.model_class, id, populate_existing=True)
            if model:
                return self.to_domain(model)
            return None
        except SQLAlchemyError as e:
            self._logger.error(f"Database error getting entity {id}: {e}")
            raise

    def get_all(self) -> List[T]:
        try:
            models = (
                self.session.query(self.model_class)
                .populate_existing()
                .order_by(self.model_class.id)
                .all()
            )
            return [self.to_domain(model) for model in models]
        except SQLAlchemyError as e:
            self._logger.error(f"Database error getting all entities: {e}")
            raise

    def count(self) -> int:
        try:
            return self.session.query(self.model_class).count()
        except SQLAlchemyError as e:
            self._logger.error(f"Database error counting entities: {e}")
            raise

    def _conditional_update(self, criteria: List[Any], values: Dict[str, Any]) -> bool:
        """
        Apply values to rows matching criteria
        Returns: True if at least one row was still in the expected state
        """
        try:
            result = self.session.query(self.model_class).filter(*criteria).update(
                values, synchronize_session=False
            )
            self.session.flush()
            return result > 0
        except IntegrityError as e:
            self.session.rollback()
            self._logger.error(f"Integrity error updating {self.model_class.__tablename__}: {e}")
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            self._logger.error(f"Database error updating {self.model_class.__tablename__}: {e}")
            raise


class FloorRepository(SQLAlchemyRepository[Floor]):
    """Repository for floors"""

    @property
    def model_class(self) -> Type[Base]:
        return FloorModel

    def to_domain(self, model: FloorModel) -> Floor:
        return Mapper.floor_to_domain(model)

    def to_orm(self, entity: Floor) -> FloorModel:
        return Mapper.floor_to_orm(entity)

    def get_by_number(self, number: int, for_update: bool = False) -> Optional[Floor]:
        """Find a floor by its ordinal number, optionally locking the row"""
        try:
            query = self.session.query(FloorModel).filter(FloorModel.number == number)
            if for_update:
                query = query.with_for_update()
            model = query.populate_existing().first()
            return self.to_domain(model) if model else None
        except SQLAlchemyError as e:
            self._logger.error(f"Database error finding floor {number}: {e}")
            raise

    def list_by_number(self) -> List[Floor]:
        try:
            models = (
                self.session.query(FloorModel)
                .populate_existing()
                .order_by(FloorModel.number)
                .all()
            )
            return [self.to_domain(model) for model in models]
        except SQLAlchemyError as e:
            self._logger.error(f"Database error listing floors: {e}")
            raise

    def find_fitting_and_available(self, vehicle_height: Decimal, vehicle_weight: Decimal) -> List[Floor]:
        """
        Floors with at least one free space, a ceiling high enough for the
        vehicle and enough allowed weight left, in ascending floor number
        """
        try:
            floors_with_free_space = select(ParkingSpaceModel.floor).where(
                ParkingSpaceModel.occupying_vehicle_id.is_(None)
            )
            models = (
                self.session.query(FloorModel)
                .filter(
                    FloorModel.number.in_(floors_with_free_space),
                    FloorModel.ceiling_height >= vehicle_height,
                    FloorModel.allowed_weight >= vehicle_weight
                )
                .populate_existing()
                .order_by(FloorModel.number)
                .all()
            )
            return [self.to_domain(model) for model in models]
        except SQLAlchemyError as e:
            self._logger.error(f"Database error finding fitting floors: {e}")
            raise

    def compare_and_set_allowed_weight(
        self,
        number: int,
        expected_allowed_weight: Decimal,
        new_allowed_weight: Decimal
    ) -> bool:
        """Write the new allowed weight only if nobody changed it since it was read"""
        return self._conditional_update(
            [FloorModel.number == number, FloorModel.allowed_weight == expected_allowed_weight],
            {'allowed_weight': new_allowed_weight}
        )


class ParkingSpaceRepository(SQLAlchemyRepository[ParkingSpace]):
    """Repository for parking spaces"""

    @property
    def model_class(self) -> Type[Base]:
        return ParkingSpaceModel

    def to_domain(self, model: ParkingSpaceModel) -> ParkingSpace:
        return Mapper.parking_space_to_domain(model)

    def to_orm(self, entity: ParkingSpace) -> ParkingSpaceModel:
        return Mapper.parking_space_to_orm(entity)

    def find_free_on_floor(self, floor_number: int) -> List[ParkingSpace]:
        """Free spaces on a floor, lowest id first"""
        try:
            models = (
                self.session.query(ParkingSpaceModel)
                .filter(
                    ParkingSpaceModel.floor == floor_number,
                    ParkingSpaceModel.occupying_vehicle_id.is_(None)
                )
                .populate_existing()
                .order_by(ParkingSpaceModel.id)
                .all()
            )
            return [self.to_domain(model) for model in models]
        except SQLAlchemyError as e:
            self._logger.error(f"Database error finding free spaces on floor {floor_number}: {e}")
            raise

    def find_by_occupying_vehicle(self, vehicle_id: str) -> Optional[ParkingSpace]:
        try:
            model = (
                self.session.query(ParkingSpaceModel)
                .filter(ParkingSpaceModel.occupying_vehicle_id == vehicle_id)
                .populate_existing()
                .first()
            )
            return self.to_domain(model) if model else None
        except SQLAlchemyError as e:
            self._logger.error(f"Database error finding space of vehicle {vehicle_id}: {e}")
            raise

    def occupy(self, space_id: int, vehicle_id: str) -> bool:
        """Mark a space as occupied if it is still free"""
        return self._conditional_update(
            [ParkingSpaceModel.id == space_id, ParkingSpaceModel.occupying_vehicle_id.is_(None)],
            {'occupying_vehicle_id': vehicle_id}
        )

    def vacate(self, space_id: int, vehicle_id: str) -> bool:
        """Mark a space as free if it is still held by the vehicle"""
        return self._conditional_update(
            [ParkingSpaceModel.id == space_id, ParkingSpaceModel.occupying_vehicle_id == vehicle_id],
            {'occupying_vehicle_id': None}
        )

    def get_occupancy_by_floor(self) -> Dict[int, Tuple[int, int]]:
        """
        Occupancy per floor number
        Returns: {floor_number: (free_spaces, occupied_spaces)}
        """
        try:
            rows = (
                self.session.query(
                    ParkingSpaceModel.floor,
                    func.count(ParkingSpaceModel.id),
                    func.count(ParkingSpaceModel.occupying_vehicle_id)
                )
                .group_by(ParkingSpaceModel.floor)
                .all()
            )
            return {floor: (total - occupied, occupied) for floor, total, occupied in rows}
        except SQLAlchemyError as e:
            self._logger.error(f"Database error getting occupancy stats: {e}")
            raise


class ParkingRecordRepository(SQLAlchemyRepository[ParkingRecord]):
    """Repository for parking records"""

    @property
    def model_class(self) -> Type[Base]:
        return ParkingRecordModel

    def to_domain(self, model: ParkingRecordModel) -> ParkingRecord:
        return Mapper.parking_record_to_domain(model)

    def to_orm(self, entity: ParkingRecord) -> ParkingRecordModel:
        return Mapper.parking_record_to_orm(entity)

    def find_open_by_vehicle(self, vehicle_id: str) -> Optional[ParkingRecord]:
        try:
            model = (
                self.session.query(ParkingRecordModel)
                .filter(
                    ParkingRecordModel.vehicle_id == vehicle_id,
                    ParkingRecordModel.status == ParkingStatus.IN_PROGRESS.value
                )
                .populate_existing()
                .first()
            )
            return self.to_domain(model) if model else None
        except SQLAlchemyError as e:
            self._logger.error(f"Database error finding open record of {vehicle_id}: {e}")
            raise

    def find_by_vehicle(self, vehicle_id: str) -> List[ParkingRecord]:
        try:
            models = (
                self.session.query(ParkingRecordModel)
                .filter(ParkingRecordModel.vehicle_id == vehicle_id)
                .populate_existing()
                .order_by(ParkingRecordModel.parking_timestamp, ParkingRecordModel.id)
                .all()
            )
            return [self.to_domain(model) for model in models]
        except SQLAlchemyError as e:
            self._logger.error(f"Database error finding records of {vehicle_id}: {e}")
            raise

    def find_open(self) -> List[ParkingRecord]:
        try:
            models = (
                self.session.query(ParkingRecordModel)
                .filter(ParkingRecordModel.status == ParkingStatus.IN_PROGRESS.value)
                .populate_existing()
                .order_by(ParkingRecordModel.id)
                .all()
            )
            return [self.to_domain(model) for model in models]
        except SQLAlchemyError as e:
            self._logger.error(f"Database error finding open records: {e}")
            raise

    def mark_over(self, record_id: int, emptying_timestamp: datetime) -> bool:
        """Close a record if it is still in progress"""
        return self._conditional_update(
            [
                ParkingRecordModel.id == record_id,
                ParkingRecordModel.status == ParkingStatus.IN_PROGRESS.value
            ],
            {
                'status': ParkingStatus.OVER.value,
                'emptying_timestamp': emptying_timestamp
            }
        )


class BillRepository(SQLAlchemyRepository[Bill]):
    """Repository for bills"""

    @property
    def model_class(self) -> Type[Base]:
        return BillModel

    def to_domain(self, model: BillModel) -> Bill:
        return Mapper.bill_to_domain(model)

    def to_orm(self, entity: Bill) -> BillModel:
        return Mapper.bill_to_orm(entity)

    def find_by_vehicle(self, vehicle_id: str) -> List[Bill]:
        try:
            models = (
                self.session.query(BillModel)
                .filter(BillModel.vehicle_id == vehicle_id)
                .order_by(BillModel.id)
                .all()
            )
            return [self.to_domain(model) for model in models]
        except SQLAlchemyError as e:
            self._logger.error(f"Database error finding bills of {vehicle_id}: {e}")
            raise


# ============================================================================
# SQLALCHEMY UNIT OF WORK
# ============================================================================

class SQLAlchemyUnitOfWork(UnitOfWork):
    """
    Unit of Work implementation with SQLAlchemy
    Commits when the block exits normally, rolls back on any exception.
    One instance serves one transaction at a time; create one per operation.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory
        self._logger = logging.getLogger(self.__class__.__name__)

    def __enter__(self):
        self.session = self.session_factory()

        # Initialize repositories
        self._floors = FloorRepository(self.session)
        self._parking_spaces = ParkingSpaceRepository(self.session)
        self._parking_records = ParkingRecordRepository(self.session)
        self._bills = BillRepository(self.session)

        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is not None:
                self._logger.debug(f"Rolling back unit of work: {exc_type.__name__}: {exc_val}")
                self.rollback()
            else:
                self.commit()
        finally:
            self.session.close()

    def commit(self):
        """Commit the transaction"""
        try:
            self.session.commit()
            self._logger.debug("Transaction committed")
        except SQLAlchemyError as e:
            self._logger.error(f"Error committing transaction: {e}")
            self.session.rollback()
            raise

    def rollback(self):
        """Rollback the transaction"""
        self.session.rollback()
        self._logger.debug("Transaction rolled back")

    @property
    def floors(self) -> FloorRepository:
        return self._floors

    @property
    def parking_spaces(self) -> ParkingSpaceRepository:
        return self._parking_spaces

    @property
    def parking_records(self) -> ParkingRecordRepository:
        return self._parking_records

    @property
    def bills(self) -> BillRepository:
        return self._bills


class UnitOfWorkFactory:
    """Creates a fresh unit of work per operation over one shared engine"""

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def __call__(self) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(self.session_factory)

    def create_schema(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


# ============================================================================
# REPOSITORY FACTORY
# ============================================================================

class RepositoryFactory:
    """Factory for creating engines and units of work"""

    @staticmethod
    def create_engine(database_url: str, echo: bool = False) -> Engine:
        """Create an engine; SQLite gets thread-friendly connection settings"""
        if database_url.startswith('sqlite'):
            connect_args = {'check_same_thread': False, 'timeout': 30}
            if database_url in ('sqlite://', 'sqlite:///:memory:'):
                # One shared connection, otherwise every session sees its own empty database
                return create_engine(
                    database_url, echo=echo, connect_args=connect_args, poolclass=StaticPool
                )
            return create_engine(database_url, echo=echo, connect_args=connect_args)
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    @staticmethod
    def create_uow_factory(database_url: str, echo: bool = False) -> UnitOfWorkFactory:
        """Create a unit of work factory and the tables if they don't exist"""
        factory = UnitOfWorkFactory(RepositoryFactory.create_engine(database_url, echo=echo))
        factory.create_schema()
        return factory
