from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response

from drivers.models import Driver

from .serializers import (
    BidSerializer,
    DateRangeSerializer,
    DriverActionSerializer,
    DriverSerializer,
    JobCreateSerializer,
    PlaceBidSerializer,
    RouteJobSerializer,
)
from .services import get_marketplace


def _validated(serializer_class, data):
    serializer = serializer_class(data=data)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


class JobViewSet(viewsets.ViewSet):
    """
    Route jobs and their bids.
    - Drivers: browse open jobs, bid, withdraw, start / complete assigned jobs
    - Operators: post, cancel, force allocation
    """

    def list(self, request):
        """
        Open job board. Optional ?startDate=YYYY-MM-DD&endDate=YYYY-MM-DD (inclusive).
        """
        dates = _validated(DateRangeSerializer, request.query_params)
        jobs = get_marketplace().list_open_jobs(dates.get('startDate'), dates.get('endDate'))
        return Response(RouteJobSerializer(jobs, many=True).data)

    def create(self, request):
        data = _validated(JobCreateSerializer, request.data)
        job = get_marketplace().create_job(**data)
        return Response(RouteJobSerializer(job).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        marketplace = get_marketplace()
        job = marketplace.get_job(pk)
        data = RouteJobSerializer(job).data
        data['bids'] = BidSerializer(marketplace.job_bids(pk), many=True).data
        return Response(data)

    @action(detail=True, methods=['post', 'delete'])
    def bid(self, request, pk=None):
        """
        POST places the driver's bid, DELETE withdraws their active one.
        """
        marketplace = get_marketplace()
        if request.method == 'DELETE':
            driver_id = request.data.get('driver_id') or request.query_params.get('driver_id')
            data = _validated(DriverActionSerializer, {'driver_id': driver_id})
            bid = marketplace.withdraw_driver_bid(pk, data['driver_id'])
            return Response(BidSerializer(bid).data)

        data = _validated(PlaceBidSerializer, request.data)
        bid = marketplace.place_bid(pk, data['driver_id'], data['bid_amount'], data.get('message'))
        return Response(BidSerializer(bid).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='force-allocate')
    def force_allocate(self, request, pk=None):
        """
        Operator "allocate now". A job without eligible bids answers with winning_bid = null.
        """
        marketplace = get_marketplace()
        result = marketplace.force_allocate(pk)
        return Response({
            "job": RouteJobSerializer(marketplace.get_job(pk)).data,
            "winning_bid": BidSerializer(result.winning_bid).data if result.has_winner else None,
            "rejected_bid_ids": [bid.id for bid in result.rejected_bids],
            "excluded": {bid_id: reason.value for bid_id, reason in result.excluded.items()},
        })

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        marketplace = get_marketplace()
        rejected = marketplace.cancel_job(pk)
        return Response({
            "job": RouteJobSerializer(marketplace.get_job(pk)).data,
            "rejected_bid_ids": [bid.id for bid in rejected],
        })

    @action(detail=True, methods=['post'])
    def start(self, request, pk=None):
        data = _validated(DriverActionSerializer, request.data)
        job = get_marketplace().start_job(pk, data['driver_id'])
        return Response(RouteJobSerializer(job).data)

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        data = _validated(DriverActionSerializer, request.data)
        job = get_marketplace().complete_job(pk, data['driver_id'])
        return Response(RouteJobSerializer(job).data)


class DriverViewSet(viewsets.ViewSet):
    """
    Read model of drivers, fed by the account subsystem.
    """

    def create(self, request):
        data = _validated(DriverSerializer, request.data)
        driver = Driver.new(
            data['id'],
            rating=data['rating'],
            availability=data.get('availability'),
            status=data['status'],
        )
        get_marketplace().register_driver(driver)
        return Response(DriverSerializer(driver).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        marketplace = get_marketplace()
        data = DriverSerializer(marketplace.get_driver(pk)).data
        data['jobs_won_in_window'] = marketplace.wins_in_window(pk)
        return Response(data)

    @action(detail=True, methods=['get'])
    def jobs(self, request, pk=None):
        marketplace = get_marketplace()
        marketplace.get_driver(pk)
        return Response(RouteJobSerializer(marketplace.driver_jobs(pk), many=True).data)
