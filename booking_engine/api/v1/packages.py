# booking_engine/api/v1/packages.py
"""Package API Endpoints"""
from fastapi import APIRouter, Depends, status

from booking_engine.api.dependencies import get_package_ledger
from booking_engine.schemas.provider import PackageCreate, PackageOut
from booking_engine.services.package.package_ledger import PackageLedger

router = APIRouter()


@router.post("", response_model=PackageOut, status_code=status.HTTP_201_CREATED)
def create_package(data: PackageCreate, ledger: PackageLedger = Depends(get_package_ledger)):
    return PackageLedger.to_out(ledger.create_package(data))


@router.get("/{package_id}", response_model=PackageOut)
def get_package(package_id: str, ledger: PackageLedger = Depends(get_package_ledger)):
    return PackageLedger.to_out(ledger.get_package(package_id))
