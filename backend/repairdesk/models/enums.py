import enum

class UserRole(enum.Enum):
    STAFF = "staff"
    USER = "user"

class PushChannel(enum.Enum):
    FCM = "FCM"
    APNS = "APNs"
