"""
Account endpoints.

    POST      /api/v1/auth/register/  create an account and get a JWT pair
    GET/PATCH /api/v1/auth/me/        current user's invoice name and phone

Login and refresh are simplejwt's views, wired in urls.py.
"""

from drf_spectacular.utils import extend_schema
from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.serializers import RegisterSerializer, UserSerializer


def token_pair(user) -> dict:
    refresh = RefreshToken.for_user(user)
    return {"access": str(refresh.access_token), "refresh": str(refresh)}


@extend_schema(tags=["Auth"], responses={201: UserSerializer})
class RegisterView(generics.CreateAPIView):
    """Register; the response carries tokens so checkout can start right away."""

    serializer_class = RegisterSerializer
    permission_classes = [AllowAny]

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return Response(
            {"user": UserSerializer(user).data, **token_pair(user)},
            status=status.HTTP_201_CREATED,
        )


@extend_schema(tags=["Auth"])
class MeView(generics.RetrieveUpdateAPIView):
    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated]
    http_method_names = ["get", "patch", "head", "options"]

    def get_object(self):
        return self.request.user
