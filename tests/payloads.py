"""Booking API payloads as the server sends them."""


def agreement_payload(**overrides):
    """An AgreementResponse as the API sends it."""
    data = {
        'id': 'a1',
        'customerName': 'Anand',
        'phone': '9876543210',
        'fromDate': '10/01/2025',
        'toDate': '12/01/2025',
        'busType': 'AC',
        'busCount': 1,
        'passengers': 40,
        'placesToCover': 'Ooty, Coonoor',
        'perDayRent': 12000,
        'includeMountainRent': False,
        'mountainRent': None,
        'useIndividualBusRates': False,
        'busRates': None,
        'totalAmount': 36000,
        'advancePaid': 10000,
        'balance': 26000,
        'notes': None,
        'assignedBuses': [],
        'isCancelled': False,
        'isCompleted': False,
        'createdAtUtc': '2024-12-01T10:00:00Z',
    }
    data.update(overrides)
    return data


def bus_payload(**overrides):
    data = {
        'id': 'b1',
        'vehicleNumber': 'TN01AB1234',
        'name': 'Nilgiri Queen',
        'isActive': True,
        'busType': 'AC',
        'capacity': 45,
        'baseRate': 12000,
        'homeCity': 'Coimbatore',
    }
    data.update(overrides)
    return data
