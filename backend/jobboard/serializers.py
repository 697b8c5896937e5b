from rest_framework import serializers

from drivers.availability import WEEKDAY_NAMES


class RouteJobSerializer(serializers.Serializer):
    """
    Read-only view of a RouteJob.
    """
    id = serializers.CharField()
    area = serializers.CharField()
    title = serializers.CharField()
    notes = serializers.CharField(allow_null=True)
    scheduled_date = serializers.DateField()
    start_time = serializers.TimeField(format="%H:%M")
    end_time = serializers.TimeField(format="%H:%M")
    bidding_deadline = serializers.DateTimeField()
    base_pay = serializers.DecimalField(max_digits=10, decimal_places=2, allow_null=True)
    estimated_stops = serializers.IntegerField(allow_null=True)
    estimated_hours = serializers.DecimalField(max_digits=5, decimal_places=2, allow_null=True)
    status = serializers.CharField(source='status.value')
    assigned_driver_id = serializers.CharField(allow_null=True)
    accepted_bid_id = serializers.CharField(allow_null=True)
    actual_pay = serializers.DecimalField(max_digits=10, decimal_places=2, allow_null=True)
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()
    assigned_at = serializers.DateTimeField(allow_null=True)


class BidSerializer(serializers.Serializer):
    id = serializers.CharField()
    job_id = serializers.CharField()
    driver_id = serializers.CharField()
    bid_amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    driver_rating_at_bid = serializers.FloatField()
    message = serializers.CharField(allow_null=True)
    status = serializers.CharField(source='status.value')
    created_at = serializers.DateTimeField()
    decided_at = serializers.DateTimeField(allow_null=True)


class JobCreateSerializer(serializers.Serializer):
    area = serializers.CharField(max_length=255)
    scheduled_date = serializers.DateField()
    start_time = serializers.TimeField()
    end_time = serializers.TimeField()
    base_pay = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False, allow_null=True)
    estimated_stops = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    estimated_hours = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, required=False, allow_null=True)
    title = serializers.CharField(max_length=255, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate(self, data):
        if data['end_time'] <= data['start_time']:
            raise serializers.ValidationError({"end_time": "Job must end after it starts."})
        return data


class PlaceBidSerializer(serializers.Serializer):
    driver_id = serializers.CharField()
    # the marketplace checks positivity and cents itself (InvalidAmount)
    bid_amount = serializers.CharField()
    message = serializers.CharField(max_length=1000, required=False, allow_blank=True, allow_null=True)


class DriverActionSerializer(serializers.Serializer):
    driver_id = serializers.CharField()


class DriverSerializer(serializers.Serializer):
    """
    Driver records pushed in by the account subsystem.
    availability takes the team portal shape:
        {"days": ["Mon", "Wed"], "start_time": "08:00", "end_time": "17:00"}
    """
    id = serializers.CharField(max_length=64)
    rating = serializers.FloatField(min_value=0, max_value=5, default=0)
    availability = serializers.JSONField(required=False, allow_null=True)
    status = serializers.ChoiceField(choices=['active', 'inactive'], default='active')

    def to_representation(self, driver):
        windows = sorted(driver.availability)
        return {
            "id": driver.id,
            "rating": driver.rating,
            "status": driver.status.value,
            "availability": [
                {
                    "day": WEEKDAY_NAMES[window.weekday],
                    "start_time": window.start.strftime("%H:%M"),
                    "end_time": window.end.strftime("%H:%M"),
                }
                for window in windows
            ],
        }


class DateRangeSerializer(serializers.Serializer):
    startDate = serializers.DateField(required=False)
    endDate = serializers.DateField(required=False)
