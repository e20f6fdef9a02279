import logging
from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from backend.core.roles import role_permission, CENTRAL_ADMIN, INVENTORY_MANAGER
from backend.core.utils import create_audit_log, paginated_response
from .models import CentralStock, StockAdjustment
from .serializers import CentralStockSerializer, StockAdjustmentSerializer
from .services import consume_stock, receive_stock, InsufficientStockError

logger = logging.getLogger(__name__)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def central_stock_list(request):
    """List central stock with optional ?search= and ?low_stock=<threshold>"""
    queryset = CentralStock.objects.select_related('part').order_by('part__name')

    search = request.query_params.get('search')
    if search:
        queryset = queryset.filter(Q(part__name__icontains=search) | Q(part__part_number__icontains=search))
    low_stock = request.query_params.get('low_stock')
    if low_stock:
        try:
            queryset = queryset.filter(quantity__lte=int(low_stock))
        except ValueError:
            return Response({'error': 'low_stock must be an integer'}, status=status.HTTP_400_BAD_REQUEST)

    return paginated_response(request, queryset, CentralStockSerializer, default_limit=50)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, role_permission(INVENTORY_MANAGER, CENTRAL_ADMIN)])
def stock_adjustment_list_create(request):
    """List stock movements or record a manual adjustment"""
    if request.method == 'GET':
        queryset = StockAdjustment.objects.select_related('part', 'created_by')
        part_id = request.query_params.get('part')
        if part_id:
            queryset = queryset.filter(part_id=part_id)
        reference = request.query_params.get('reference')
        if reference:
            queryset = queryset.filter(reference=reference)
        return paginated_response(request, queryset, StockAdjustmentSerializer, default_limit=50)

    serializer = StockAdjustmentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    part = data['part']

    try:
        if data['adjustment_type'] == 'in':
            adjustment = receive_stock(part, data['quantity'], user=request.user, reference=data.get('reference', ''),
                                       reason=data['reason'], notes=data.get('notes', ''))
        else:
            adjustment = consume_stock(part, data['quantity'], user=request.user, reference=data.get('reference', ''),
                                       reason=data['reason'])
    except InsufficientStockError as e:
        return Response({'error': str(e), 'code': 'insufficient_stock'}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(
        request=request,
        action='stock_adjust',
        model_name='StockAdjustment',
        object_id=adjustment.id,
        object_name=part.name,
        object_reference=part.part_number,
        changes={
            'adjustment_type': adjustment.adjustment_type,
            'quantity': adjustment.quantity,
            'reason': adjustment.reason,
            'new_stock_quantity': CentralStock.objects.get(part=part).quantity,
        },
    )
    return Response(StockAdjustmentSerializer(adjustment).data, status=status.HTTP_201_CREATED)
