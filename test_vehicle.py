import pytest
import datetime
import mongomock
from bson import ObjectId

import config
from modules.vehicle import add_vehicle, update_vehicle, delete_vehicle, vehicle_title

# Fixture: mongomock database in place of config.db
@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    mock_client = mongomock.MongoClient()
    test_db = mock_client['test_database']
    monkeypatch.setattr("config.db", test_db)
    yield test_db

@pytest.fixture
def agency(setup_test_environment):
    agency_id = setup_test_environment.agencies.insert_one({
        "owner_id": str(ObjectId()),
        "agency_name": "Oran Auto",
        "wilaya": "Oran",
        "verification_status": "verified",
    }).inserted_id
    return setup_test_environment.agencies.find_one({"_id": agency_id})

def _form(**overrides):
    form = {
        "make": "Renault",
        "model": "Clio",
        "year": 2021,
        "daily_rate_dzd": 3500,
        "seats": 5,
        "transmission": "manual",
        "fuel_type": "diesel",
        "wilaya": "Oran",
        "city": "Es Senia",
        "image_urls": ["https://img.kerya.dz/clio-front.jpg", "https://img.kerya.dz/clio-back.jpg"],
        "is_available": True,
    }
    form.update(overrides)
    return form

# Add a vehicle
def test_add_vehicle_success(agency):
    result = add_vehicle(agency, _form())
    assert result.ok

    vehicle = config.db.vehicles.find_one({"_id": ObjectId(result.data["vehicle_id"])})
    assert vehicle is not None
    assert vehicle["agency_id"] == str(agency["_id"])
    assert vehicle["daily_rate_dzd"] == 3500
    # Cover picture first
    assert vehicle["image_urls"][0] == "https://img.kerya.dz/clio-front.jpg"

# Invalid fields are rejected before anything is written
@pytest.mark.parametrize("overrides", [
    {"daily_rate_dzd": -1},
    {"transmission": "cvt"},
    {"fuel_type": "coal"},
    {"year": 1900},
])
def test_add_vehicle_invalid(agency, overrides):
    result = add_vehicle(agency, _form(**overrides))
    assert result.error.code == "validation"
    assert config.db.vehicles.count_documents({}) == 0

# Edit a vehicle
def test_update_vehicle_success(agency):
    vehicle_id = add_vehicle(agency, _form()).data["vehicle_id"]
    result = update_vehicle(agency, vehicle_id, {"daily_rate_dzd": 4000, "is_available": False})
    assert result.ok

    vehicle = config.db.vehicles.find_one({"_id": ObjectId(vehicle_id)})
    assert vehicle["daily_rate_dzd"] == 4000
    assert vehicle["is_available"] is False
    assert vehicle["model"] == "Clio"

def test_update_vehicle_invalid_keeps_document(agency):
    vehicle_id = add_vehicle(agency, _form()).data["vehicle_id"]
    assert update_vehicle(agency, vehicle_id, {"daily_rate_dzd": -5}).error.code == "validation"
    assert config.db.vehicles.find_one({"_id": ObjectId(vehicle_id)})["daily_rate_dzd"] == 3500

# Another agency cannot touch the vehicle
def test_update_vehicle_of_other_agency(agency):
    vehicle_id = add_vehicle(agency, _form()).data["vehicle_id"]
    other = {"_id": ObjectId()}
    assert update_vehicle(other, vehicle_id, {"daily_rate_dzd": 1}).error.code == "not_found"
    assert delete_vehicle(other, vehicle_id).error.code == "not_found"

# Deleting archives the vehicle
def test_delete_vehicle_success(agency):
    vehicle_id = add_vehicle(agency, _form()).data["vehicle_id"]
    # Finished rentals do not block the deletion
    config.db.bookings.insert_one({
        "user_id": str(ObjectId()),
        "vehicle_id": vehicle_id,
        "start_date": "2024-01-01",
        "end_date": "2024-01-05",
        "total_price": 17500,
        "status": "returned",
        "created_at": datetime.datetime.now()
    })
    assert delete_vehicle(agency, vehicle_id).ok
    vehicle = config.db.vehicles.find_one({"_id": ObjectId(vehicle_id)})
    assert vehicle["is_deleted"] is True
    assert vehicle["is_available"] is False
    assert vehicle["make"] == "Renault"

def test_archived_vehicle_cannot_be_edited(agency):
    vehicle_id = add_vehicle(agency, _form()).data["vehicle_id"]
    assert delete_vehicle(agency, vehicle_id).ok
    assert update_vehicle(agency, vehicle_id, {"is_available": True}).error.code == "not_found"
    assert delete_vehicle(agency, vehicle_id).error.code == "not_found"
    assert config.db.vehicles.find_one({"_id": ObjectId(vehicle_id)})["is_available"] is False

# A vehicle with an active booking cannot be deleted
@pytest.mark.parametrize("status", ["confirmed", "picked-up", "return-requested"])
def test_delete_vehicle_rented(agency, status):
    vehicle_id = add_vehicle(agency, _form()).data["vehicle_id"]
    config.db.bookings.insert_one({
        "user_id": str(ObjectId()),
        "vehicle_id": vehicle_id,
        "start_date": "2024-01-01",
        "end_date": "2024-01-05",
        "total_price": 17500,
        "status": status,
        "created_at": datetime.datetime.now()
    })
    result = delete_vehicle(agency, vehicle_id)
    assert result.error.code == "forbidden"
    assert not config.db.vehicles.find_one({"_id": ObjectId(vehicle_id)}).get("is_deleted")

def test_vehicle_title():
    assert vehicle_title({"make": "Renault", "model": "Clio", "year": 2021}) == "Renault Clio (2021)"
    assert vehicle_title({"make": "Dacia", "model": "Logan"}) == "Dacia Logan"
    assert vehicle_title(None) == "Unknown vehicle"
